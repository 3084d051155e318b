# storefront/data/models/cart.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    lines = relationship(
        "CartLineModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartLineModel.id",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0.00"))

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    def touch(self):
        self.last_updated = _utcnow()
