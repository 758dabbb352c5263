"""Coupon service - Business logic for coupon management and checkout quotes"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Coupon, Creator, Product
from ...shared import results
from ...shared.clock import to_naive_utc, utcnow
from ...shared.results import OperationResult
from ..orders.repository import OrderRepository
from ..products.repository import ProductRepository
from .repository import CouponRepository
from .schemas import COUPON_FIELD_MAP, CouponCreate, CouponUpdate, DiscountType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponQuote:
    coupon: Coupon
    discount_amount: float
    final_amount: float


def compute_discount(coupon: Coupon, amount: float) -> float:
    """Discount for ``amount``; percentage is capped by max_discount, never above amount"""
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = amount * coupon.discount_value / 100
        if coupon.max_discount and discount > coupon.max_discount:
            discount = coupon.max_discount
    else:
        discount = coupon.discount_value
    discount = min(max(discount, 0), amount)
    return round(discount, 2)


class CouponService:
    """Service layer for coupon business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CouponRepository()

    # ------------------------------------------------------------------
    # Creator management
    # ------------------------------------------------------------------

    def list_coupons(self, creator: Creator) -> list[Coupon]:
        return self.repo.list_coupons(self.db, creator.id)

    def create_coupon(self, data: CouponCreate, creator: Creator) -> OperationResult:
        if self.repo.get_by_code(self.db, creator.id, data.code):
            return OperationResult.fail("A coupon with this code already exists", results.CONFLICT)

        try:
            coupon = self.repo.create_coupon(
                self.db,
                creator.id,
                code=data.code,
                name=data.name,
                description=data.description,
                discount_type=data.discountType.value,
                discount_value=data.discountValue,
                min_purchase=data.minPurchase,
                max_discount=data.maxDiscount,
                usage_limit=data.usageLimit,
                per_user_limit=data.perUserLimit,
                product_ids=data.productIds or None,
                product_types=data.productTypes or None,
                starts_at=to_naive_utc(data.startsAt) if data.startsAt else None,
                expires_at=to_naive_utc(data.expiresAt) if data.expiresAt else None,
            )
        except IntegrityError:
            self.db.rollback()
            return OperationResult.fail("A coupon with this code already exists", results.CONFLICT)

        logger.info(f"🎟️ Coupon {coupon.code} created for creator {creator.id}")
        return OperationResult.ok(coupon)

    def update_coupon(self, coupon_id: int, data: CouponUpdate, creator: Creator) -> OperationResult:
        coupon = self.repo.get_coupon(self.db, coupon_id, creator.id)
        if not coupon:
            return OperationResult.fail("Coupon not found", results.NOT_FOUND)

        provided = data.model_dump(exclude_unset=True)
        if provided.get("code") and provided["code"] != coupon.code:
            existing = self.repo.get_by_code(self.db, creator.id, provided["code"])
            if existing and existing.id != coupon.id:
                return OperationResult.fail("A coupon with this code already exists", results.CONFLICT)

        updates = {}
        for field, value in provided.items():
            if field in ("startsAt", "expiresAt") and value is not None:
                value = to_naive_utc(value)
            if field == "discountType" and value is not None:
                value = DiscountType(value).value
            updates[COUPON_FIELD_MAP[field]] = value

        discount_type = updates.get("discount_type", coupon.discount_type)
        discount_value = updates.get("discount_value", coupon.discount_value)
        if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
            return OperationResult.fail("Percentage discount cannot exceed 100")

        return OperationResult.ok(self.repo.update_coupon(self.db, coupon, **updates))

    def toggle_coupon(self, coupon_id: int, creator: Creator) -> OperationResult:
        coupon = self.repo.get_coupon(self.db, coupon_id, creator.id)
        if not coupon:
            return OperationResult.fail("Coupon not found", results.NOT_FOUND)
        return OperationResult.ok(self.repo.update_coupon(self.db, coupon, is_active=not coupon.is_active))

    def delete_coupon(self, coupon_id: int, creator: Creator) -> OperationResult:
        coupon = self.repo.get_coupon(self.db, coupon_id, creator.id)
        if not coupon:
            return OperationResult.fail("Coupon not found", results.NOT_FOUND)
        if coupon.usage_count > 0:
            # Orders keep a reference; deactivate instead
            self.repo.update_coupon(self.db, coupon, is_active=False)
            logger.info(f"Coupon {coupon.code} has been used, deactivated instead of deleted")
            return OperationResult.ok(coupon, changed=False)
        self.repo.delete_coupon(self.db, coupon)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def quote(
        self,
        product: Product,
        code: str,
        buyer_email: str,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Check a coupon against a product and buyer and price the discount"""
        now = to_naive_utc(now) if now else utcnow()
        coupon = self.repo.get_by_code(self.db, product.creator_id, code)
        if not coupon or not coupon.is_active:
            return OperationResult.fail("Coupon not found", results.COUPON_INVALID)

        if coupon.starts_at and coupon.starts_at > now:
            return OperationResult.fail("This coupon is not active yet", results.COUPON_INVALID)
        if coupon.expires_at and coupon.expires_at < now:
            return OperationResult.fail("This coupon has expired", results.COUPON_INVALID)

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return OperationResult.fail("This coupon has been fully used", results.COUPON_USAGE_LIMIT)

        if coupon.per_user_limit:
            used = OrderRepository.count_coupon_uses_by_buyer(self.db, coupon.id, buyer_email)
            if used >= coupon.per_user_limit:
                return OperationResult.fail(
                    "You have already used this coupon", results.COUPON_USER_LIMIT
                )

        amount = float(product.price or 0)
        if coupon.min_purchase and amount < coupon.min_purchase:
            return OperationResult.fail(
                f"This coupon requires a minimum purchase of {coupon.min_purchase:,.2f}",
                results.COUPON_INVALID,
            )

        if coupon.product_ids and product.id not in coupon.product_ids:
            return OperationResult.fail("This coupon cannot be used for this product", results.COUPON_INVALID)
        if coupon.product_types and product.type not in coupon.product_types:
            return OperationResult.fail(
                "This coupon cannot be used for this type of product", results.COUPON_INVALID
            )

        discount = compute_discount(coupon, amount)
        final = round(max(0.0, amount - discount), 2)
        return OperationResult.ok(CouponQuote(coupon=coupon, discount_amount=discount, final_amount=final))

    def validate_for_checkout(
        self, product_id: int, code: str, buyer_email: str, now: Optional[datetime] = None
    ) -> OperationResult:
        product = ProductRepository.get_published_product(self.db, product_id)
        if not product:
            return OperationResult.fail("Product not found", results.NOT_FOUND)
        return self.quote(product, code, buyer_email.strip().lower(), now)
