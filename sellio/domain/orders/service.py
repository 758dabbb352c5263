"""Order service - Business logic for the order lifecycle.

Each operation that changes an order runs in one transaction: the status
UPDATE (guarded by ``apply_transition``), the slot seat change and the
payment/fulfillment writes commit together or not at all.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DOWNLOAD_ACCESS_DAYS, ORDER_PAYMENT_WINDOW_HOURS
from ...models import Creator, Order, Payment
from ...services.slip_verification import SlipVerificationResult
from ...shared import results
from ...shared.clock import now_local, to_naive_utc, utcnow
from ...shared.results import OperationResult
from ..coupons.repository import CouponRepository
from ..coupons.service import CouponService
from ..fulfillments.repository import FulfillmentRepository
from ..fulfillments.schemas import FulfillmentType, has_required_details, initial_content
from ..products.repository import ProductRepository
from ..products.schemas import ProductType, is_bookable, parse_product_config
from ..slots.capacity import evaluate_slot
from ..slots.repository import SlotRepository
from .repository import OrderRepository
from .schemas import CheckoutCreate
from .state_machine import OrderEvent, OrderStatus, apply_transition, can_apply

logger = logging.getLogger(__name__)

SLIP_VERIFIER_ACTOR = "slip_verification"

MISSING_DETAILS_MESSAGES = {
    FulfillmentType.BOOKING_DETAILS.value: "Add the meeting link or location before confirming this booking",
    FulfillmentType.LIVE_ACCESS.value: "Add the live session access link before confirming this order",
}


class OrderService:
    """Service layer for order lifecycle business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()
        self.coupons = CouponService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> OperationResult:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        return OperationResult.ok(order)

    def get_creator_order(self, order_id: str, creator: Creator) -> OperationResult:
        order = self.repo.get_creator_order(self.db, order_id, creator.id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        return OperationResult.ok(order)

    def list_orders(
        self,
        creator: Creator,
        status: Optional[str] = None,
        product_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        return self.repo.list_creator_orders(self.db, creator.id, status, product_id, limit, offset)

    def list_calendar_bookings(
        self, creator: Creator, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> OperationResult:
        """Upcoming and past sessions for the creator's calendar, either bound optional"""
        if start_date and end_date and start_date > end_date:
            return OperationResult.fail("Start date must be on or before end date")
        return OperationResult.ok(
            self.repo.list_calendar_bookings(self.db, creator.id, start_date, end_date)
        )

    def get_stats(self, creator: Creator) -> tuple[dict[str, int], float]:
        return self.repo.status_counts(self.db, creator.id), self.repo.confirmed_revenue(self.db, creator.id)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_order(self, data: CheckoutCreate, now: Optional[datetime] = None) -> OperationResult:
        """Place an order, taking a slot seat and a coupon use atomically"""
        now = now or now_local()
        product = ProductRepository.get_published_product(self.db, data.productId)
        if not product:
            return OperationResult.fail("Product not found", results.NOT_FOUND)
        if not product.creator.promptpay_id:
            return OperationResult.fail("This store is not accepting payments yet")
        if product.type == ProductType.LINK.value:
            return OperationResult.fail("This product cannot be purchased")

        try:
            config = parse_product_config(product)
        except ValidationError as e:
            logger.error(f"❌ Invalid configuration on product {product.id}: {e}")
            return OperationResult.fail("This product is not available for purchase right now")

        slot = None
        if is_bookable(product.type):
            if not data.slotId:
                return OperationResult.fail("Please choose a time slot")
            slot = SlotRepository.get_product_slot(self.db, data.slotId, product.id)
            if not slot:
                return OperationResult.fail("This time slot is not available", results.SLOT_UNAVAILABLE)

            same_day = SlotRepository.list_slots_on_date(self.db, product.id, slot.slot_date)
            verdict = evaluate_slot(slot, config, same_day, now)
            if not verdict.allowed:
                return OperationResult.fail(verdict.reason, verdict.code)

            cap = config.max_bookings_per_customer
            if cap and self.repo.count_active_orders_for_buyer(self.db, product.id, data.buyerEmail) >= cap:
                return OperationResult.fail(
                    f"You can book this session at most {cap} time(s)", results.CONFLICT
                )

        unit_price = float(product.price or 0)
        discount = 0.0
        coupon = None
        if data.couponCode:
            quote = self.coupons.quote(product, data.couponCode, data.buyerEmail, now)
            if not quote:
                return quote
            coupon = quote.data.coupon
            discount = quote.data.discount_amount
        total = round(max(0.0, unit_price - discount), 2)

        created_at = to_naive_utc(now)
        try:
            if slot is not None and not SlotRepository.reserve(self.db, slot.id):
                self.db.rollback()
                logger.info(f"Slot {slot.id} filled up before order could be placed")
                return OperationResult.fail(
                    "This time slot was just booked by someone else", results.CAPACITY_EXCEEDED
                )

            if coupon is not None and not CouponRepository.consume_use(self.db, coupon.id):
                self.db.rollback()
                return OperationResult.fail("This coupon has been fully used", results.COUPON_USAGE_LIMIT)

            order = Order(
                product_id=product.id,
                creator_id=product.creator_id,
                buyer_name=data.buyerName,
                buyer_email=data.buyerEmail,
                buyer_phone=data.buyerPhone,
                buyer_note=data.buyerNote,
                refund_promptpay=data.refundPromptpay,
                slot_id=slot.id if slot else None,
                slot_reserved=slot is not None,
                booking_date=slot.slot_date if slot else None,
                booking_time=slot.start_time if slot else None,
                status=OrderStatus.PENDING_PAYMENT.value,
                coupon_id=coupon.id if coupon else None,
                coupon_code=coupon.code if coupon else None,
                coupon_counted=coupon is not None,
                unit_price=unit_price,
                discount_amount=discount,
                total=total,
                expires_at=created_at + timedelta(hours=ORDER_PAYMENT_WINDOW_HOURS),
            )
            self.db.add(order)
            self.db.flush()

            self.db.add(Payment(order_id=order.id, amount=total, status="pending"))
            if slot is not None:
                fulfillment_type, content = initial_content(config)
                FulfillmentRepository.add_fulfillment(self.db, order.id, fulfillment_type, content)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create order for product {product.id}: {str(e)}")
            raise

        logger.info(
            f"🛒 Order {order.id} created for product {product.id} "
            f"(slot={order.slot_id}, total={total}, coupon={order.coupon_code})"
        )
        return OperationResult.ok(self.repo.get_order(self.db, order.id))

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def is_expired(self, order: Order, now: Optional[datetime] = None) -> bool:
        now = to_naive_utc(now) if now else utcnow()
        return (
            order.status == OrderStatus.PENDING_PAYMENT.value
            and order.expires_at is not None
            and order.expires_at < now
        )

    def expire_order(self, order: Order, now: Optional[datetime] = None) -> bool:
        """Cancel an unpaid order whose payment window has passed and free its seat"""
        now = to_naive_utc(now) if now else utcnow()
        try:
            if not apply_transition(
                self.db,
                order.id,
                OrderEvent.EXPIRE,
                cancel_reason="Payment window expired",
                cancelled_at=now,
            ):
                self.db.rollback()
                return False
            self.repo.release_for_order(self.db, order)
            self.repo.update_payment(self.db, order.id, status="failed")
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to expire order {order.id}: {str(e)}")
            raise
        logger.info(f"⌛ Order {order.id} expired, slot released")
        return True

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        now = to_naive_utc(now) if now else utcnow()
        expired = 0
        for order in self.repo.expired_unpaid_orders(self.db, now):
            if self.expire_order(order, now):
                expired += 1
        return expired

    def attach_slip(self, order_id: str, slip_url: str, now: Optional[datetime] = None) -> OperationResult:
        """Record an uploaded slip and move the order to pending_confirmation"""
        now = to_naive_utc(now) if now else utcnow()
        order = self.repo.get_order(self.db, order_id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)

        if self.is_expired(order, now):
            self.expire_order(order, now)
            return OperationResult.fail(
                "This order has expired. Please place a new order.", results.EXPIRED
            )

        try:
            if not apply_transition(self.db, order.id, OrderEvent.UPLOAD_SLIP):
                self.db.rollback()
                return OperationResult.fail(
                    "This order is not waiting for payment", results.INVALID_TRANSITION
                )
            self.repo.update_payment(
                self.db,
                order.id,
                slip_url=slip_url,
                slip_uploaded_at=now,
                slip_verified=None,
                slip_verify_message=None,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to attach slip to order {order.id}: {str(e)}")
            raise

        logger.info(f"🧾 Slip uploaded for order {order.id}")
        return OperationResult.ok(self.repo.get_order(self.db, order.id))

    def apply_verification(self, order_id: str, verification: SlipVerificationResult) -> OperationResult:
        """Auto-confirm on a verified slip, otherwise flag the payment for manual review"""
        if verification.verified:
            result = self.confirm_order(
                order_id,
                confirmed_by=SLIP_VERIFIER_ACTOR,
                automated=True,
                verification=verification,
            )
            if result or result.code == results.NOT_FOUND:
                return result
            logger.warning(f"⚠️ Verified slip on order {order_id} could not auto-confirm: {result.error}")
            message = f"Slip verified but the order could not be confirmed automatically: {result.error}"
            flagged = True
        else:
            message = verification.message
            flagged = False

        self.repo.update_payment(
            self.db,
            order_id,
            slip_verified=flagged,
            slip_verify_message=message,
            slip_verify_ref=verification.trans_ref,
            slip_verified_at=utcnow(),
        )
        self.db.commit()
        logger.info(f"🔎 Order {order_id} left for manual review: {message}")
        order = self.repo.get_order(self.db, order_id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        return OperationResult.ok(order, changed=False)

    def confirm_order(
        self,
        order_id: str,
        creator: Optional[Creator] = None,
        confirmed_by: Optional[str] = None,
        automated: bool = False,
        verification: Optional[SlipVerificationResult] = None,
    ) -> OperationResult:
        """Confirm payment.

        Manual confirmation of a booking/live order needs the meeting details
        filled in first; automated confirmation after slip verification does not.
        """
        if creator is not None:
            order = self.repo.get_creator_order(self.db, order_id, creator.id)
        else:
            order = self.repo.get_order(self.db, order_id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)

        if order.status == OrderStatus.CONFIRMED.value:
            return OperationResult.ok(order, changed=False)
        if not can_apply(order.status, OrderEvent.CONFIRM):
            return OperationResult.fail(
                f"Cannot confirm an order that is {order.status}", results.INVALID_TRANSITION
            )

        payment = order.payment
        if payment is None or not payment.slip_url:
            return OperationResult.fail("No payment slip has been uploaded for this order")

        fulfillment = order.fulfillment
        if not automated and is_bookable(order.product.type):
            if fulfillment is None or not has_required_details(fulfillment.type, fulfillment.content):
                fulfillment_type = (
                    fulfillment.type if fulfillment else FulfillmentType.BOOKING_DETAILS.value
                )
                return OperationResult.fail(
                    MISSING_DETAILS_MESSAGES.get(fulfillment_type, "Fulfillment details are missing")
                )

        now = utcnow()
        actor = confirmed_by or (str(creator.id) if creator else None)
        try:
            if not apply_transition(self.db, order.id, OrderEvent.CONFIRM, confirmed_at=now):
                self.db.rollback()
                current = self.repo.get_order(self.db, order_id)
                if current and current.status == OrderStatus.CONFIRMED.value:
                    return OperationResult.ok(current, changed=False)
                return OperationResult.fail(
                    "This order was changed by another request", results.INVALID_TRANSITION
                )

            if order.slot_id and not order.slot_reserved:
                if not self.repo.reserve_for_order(self.db, order.id, order.slot_id):
                    self.db.rollback()
                    return OperationResult.fail(
                        "The booked time slot is already full", results.CAPACITY_EXCEEDED
                    )

            if fulfillment is None:
                self._create_fulfillment_on_confirm(order, now)

            if order.coupon_id and not order.coupon_counted:
                self._count_coupon_use(order)

            payment_changes = {
                "status": "confirmed",
                "confirmed_at": now,
                "confirmed_by": actor,
            }
            if verification is not None:
                payment_changes.update(
                    slip_verified=True,
                    slip_verify_ref=verification.trans_ref,
                    slip_verify_message=verification.message,
                    slip_verified_at=now,
                )
            self.repo.update_payment(self.db, order.id, **payment_changes)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to confirm order {order.id}: {str(e)}")
            raise

        logger.info(f"✅ Order {order.id} confirmed by {actor}")
        return OperationResult.ok(self.repo.get_order(self.db, order.id))

    def _create_fulfillment_on_confirm(self, order: Order, now: datetime) -> None:
        config = parse_product_config(order.product)
        initial = initial_content(config)
        if initial is None:
            return
        fulfillment_type, content = initial
        if fulfillment_type == FulfillmentType.DOWNLOAD.value:
            FulfillmentRepository.add_fulfillment(
                self.db,
                order.id,
                fulfillment_type,
                content,
                max_downloads=config.max_downloads,
                access_until=now + timedelta(days=DOWNLOAD_ACCESS_DAYS),
            )
        else:
            FulfillmentRepository.add_fulfillment(self.db, order.id, fulfillment_type, content)

    def _count_coupon_use(self, order: Order) -> None:
        claimed = (
            self.db.query(Order)
            .filter(Order.id == order.id, Order.coupon_counted.is_(False))
            .update({Order.coupon_counted: True}, synchronize_session=False)
        )
        if claimed and not CouponRepository.consume_use(self.db, order.coupon_id):
            logger.warning(f"⚠️ Coupon {order.coupon_id} is over its usage limit at confirmation of {order.id}")

    def reject_payment(self, order_id: str, creator: Creator, reason: str) -> OperationResult:
        """Reject the slip: the order is cancelled and its seat released"""
        order = self.repo.get_creator_order(self.db, order_id, creator.id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        if not can_apply(order.status, OrderEvent.REJECT):
            return OperationResult.fail(
                "Only orders waiting for confirmation can be rejected", results.INVALID_TRANSITION
            )

        now = utcnow()
        try:
            if not apply_transition(
                self.db, order.id, OrderEvent.REJECT, cancel_reason=reason, cancelled_at=now
            ):
                self.db.rollback()
                return OperationResult.fail(
                    "This order was changed by another request", results.INVALID_TRANSITION
                )
            self.repo.release_for_order(self.db, order)
            self.repo.update_payment(self.db, order.id, status="failed", rejection_reason=reason)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to reject payment for order {order.id}: {str(e)}")
            raise

        logger.info(f"🚫 Payment rejected for order {order.id}: {reason}")
        return OperationResult.ok(self.repo.get_order(self.db, order.id))

    def refund_order(
        self,
        order_id: str,
        creator: Creator,
        refund_slip_url: str,
        note: Optional[str] = None,
    ) -> OperationResult:
        """Record a refund; a seat still held by the order is released"""
        order = self.repo.get_creator_order(self.db, order_id, creator.id)
        if not order:
            return OperationResult.fail("Order not found", results.NOT_FOUND)
        if order.status == OrderStatus.REFUNDED.value:
            return OperationResult.ok(order, changed=False)
        if not can_apply(order.status, OrderEvent.REFUND):
            return OperationResult.fail(
                f"Cannot refund an order that is {order.status}", results.INVALID_TRANSITION
            )

        now = utcnow()
        try:
            if not apply_transition(self.db, order.id, OrderEvent.REFUND, refunded_at=now):
                self.db.rollback()
                return OperationResult.fail(
                    "This order was changed by another request", results.INVALID_TRANSITION
                )
            self.repo.release_for_order(self.db, order)
            self.repo.update_payment(
                self.db,
                order.id,
                status="refunded",
                refund_slip_url=refund_slip_url,
                refund_note=note,
                refund_amount=order.total,
                refunded_at=now,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to refund order {order.id}: {str(e)}")
            raise

        logger.info(f"💸 Order {order.id} refunded ({order.total})")
        return OperationResult.ok(self.repo.get_order(self.db, order.id))
