"""Product repository - read access used by slots, orders and coupons"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Creator, Product


class ProductRepository:
    """Repository for product lookups"""

    @staticmethod
    def get_creator_product(db: Session, product_id: int, creator_id: int) -> Optional[Product]:
        return (
            db.query(Product)
            .filter(Product.id == product_id, Product.creator_id == creator_id)
            .first()
        )

    @staticmethod
    def get_published_product(db: Session, product_id: int) -> Optional[Product]:
        """Product visible in a published store"""
        return (
            db.query(Product)
            .options(joinedload(Product.creator))
            .join(Creator, Creator.id == Product.creator_id)
            .filter(
                Product.id == product_id,
                Product.is_published.is_(True),
                Creator.is_published.is_(True),
            )
            .first()
        )
