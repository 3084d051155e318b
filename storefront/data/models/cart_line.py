# storefront/data/models/cart_line.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, func
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartLineModel(Base):
    __tablename__ = "cart_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_lines_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)

    # catalog references, no FK: the catalog may drop a row under a live cart
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)

    quantity = Column(Integer, nullable=False)
    # set once at creation, never recomputed from the catalog
    unit_price_captured = Column(Numeric(18, 2), nullable=False)
    added_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    cart = relationship("CartModel", back_populates="lines")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price_captured * self.quantity


# one line per (cart, product, variant); NULL variants must collide too
Index(
    "u_cart_product_variant",
    CartLineModel.cart_id,
    CartLineModel.product_id,
    func.coalesce(CartLineModel.variant_id, 0),
    unique=True,
)
