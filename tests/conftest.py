import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, time, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sellio import models  # noqa: E402,F401
from sellio.database import Base  # noqa: E402
from sellio.models import BookingSlot, Coupon, Creator, Order, Payment, Product  # noqa: E402
from sellio.services import notification_service  # noqa: E402
from sellio.services.slip_verification import SlipVerificationResult  # noqa: E402
from sellio.shared.clock import today_local  # noqa: E402

ONLINE_BOOKING_CONFIG = {
    "duration_minutes": 60,
    "location": {"meeting_type": "online", "meeting_url": "", "meeting_platform": "Zoom"},
}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture notifications instead of calling the email provider"""
    sent = []

    async def fake_send_notification(notification_type, recipient, email_func, **email_kwargs):
        if not recipient:
            return False
        sent.append({"type": notification_type, "to": recipient, **email_kwargs})
        return True

    monkeypatch.setattr(notification_service, "send_notification", fake_send_notification)
    return sent


# ============================================================================
# Factories
# ============================================================================


def make_creator(db, **overrides) -> Creator:
    suffix = db.query(Creator).count() + 1
    data = {
        "firebase_uid": f"uid-{suffix}",
        "username": f"creator{suffix}",
        "display_name": f"Creator {suffix}",
        "email": f"creator{suffix}@example.com",
        "promptpay_id": "0812345678",
        "is_published": True,
    }
    data.update(overrides)
    creator = Creator(**data)
    db.add(creator)
    db.commit()
    db.refresh(creator)
    return creator


def make_product(db, creator, product_type="booking", price=500.0, type_config=None, **overrides) -> Product:
    if type_config is None:
        type_config = dict(ONLINE_BOOKING_CONFIG) if product_type == "booking" else {}
    product = Product(
        creator_id=creator.id,
        title=overrides.pop("title", f"{product_type.title()} product"),
        type=product_type,
        price=price,
        is_published=overrides.pop("is_published", True),
        type_config=type_config,
        **overrides,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_slot(
    db,
    product,
    slot_date=None,
    start=time(9, 0),
    end=None,
    max_bookings=1,
    current_bookings=0,
    is_available=True,
) -> BookingSlot:
    slot_date = slot_date or future_date()
    if end is None:
        end = time(start.hour + 1, start.minute)
    slot = BookingSlot(
        product_id=product.id,
        creator_id=product.creator_id,
        slot_date=slot_date,
        start_time=start,
        end_time=end,
        max_bookings=max_bookings,
        current_bookings=current_bookings,
        is_available=is_available,
        is_booked=current_bookings > 0,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def make_coupon(db, creator, code="SAVE10", discount_type="percentage", discount_value=10, **overrides) -> Coupon:
    coupon = Coupon(
        creator_id=creator.id,
        code=code,
        discount_type=discount_type,
        discount_value=discount_value,
        **overrides,
    )
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def make_order(db, product, slot=None, status="pending_payment", buyer_email="buyer@example.com", **overrides) -> Order:
    """Insert an order directly, holding a seat on ``slot`` like checkout does"""
    if slot is not None:
        slot.current_bookings += 1
        slot.is_booked = True
    order = Order(
        product_id=product.id,
        creator_id=product.creator_id,
        buyer_name=overrides.pop("buyer_name", "Buyer"),
        buyer_email=buyer_email,
        slot_id=slot.id if slot else None,
        slot_reserved=slot is not None,
        booking_date=slot.slot_date if slot else None,
        booking_time=slot.start_time if slot else None,
        status=status,
        unit_price=product.price,
        total=overrides.pop("total", product.price),
        **overrides,
    )
    db.add(order)
    db.flush()
    db.add(
        Payment(
            order_id=order.id,
            amount=order.total,
            status="confirmed" if status == "confirmed" else "pending",
            slip_url="https://files.test/slip.png" if status != "pending_payment" else None,
        )
    )
    db.commit()
    db.refresh(order)
    return order


def future_date(days: int = 3) -> date:
    return today_local() + timedelta(days=days)


# ============================================================================
# Collaborator fakes
# ============================================================================


class FakeStorage:
    def __init__(self):
        self.uploads = []

    def upload(self, prefix, order_id, content, content_type):
        self.uploads.append({"prefix": prefix, "order_id": order_id, "size": len(content)})
        return f"https://files.test/{prefix}/{order_id}/{len(self.uploads)}.png"


class FakeVerifier:
    def __init__(self, result=None, enabled=True):
        self.result = result or SlipVerificationResult(True, False, "Slip not found")
        self.enabled = enabled
        self.calls = []

    async def verify(self, image_url, expected_amount=None, check_duplicate=True):
        self.calls.append({"image_url": image_url, "expected_amount": expected_amount})
        return self.result


@pytest.fixture
def creator(db):
    return make_creator(db)


@pytest.fixture
def booking_product(db, creator):
    return make_product(db, creator)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def verifier():
    return FakeVerifier()


