# storefront/data/models/order_line.py
from decimal import Decimal

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderLineModel(Base):
    """Point-in-time receipt line; never updated after the order is placed."""

    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # traceability only, the catalog row may change or disappear later
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)

    quantity_snapshot = Column(Integer, nullable=False)
    unit_price_snapshot = Column(Numeric(18, 2), nullable=False)
    product_name_snapshot = Column(String(200), nullable=False)
    variant_label_snapshot = Column(String(100), nullable=True)

    order = relationship("OrderModel", back_populates="lines")

    @property
    def total_price(self) -> Decimal:
        return self.unit_price_snapshot * self.quantity_snapshot
