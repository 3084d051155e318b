# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.order_status import OrderStatus


def _utcnow():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)

    status = Column(
        Enum(OrderStatus, name="order_status", native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    total_amount = Column(Numeric(18, 2), nullable=False)

    shipping_address = Column(Text, nullable=False)
    customer_phone = Column(String(32), nullable=False)
    customer_email = Column(String(255), nullable=False)

    payment_gateway_order_id = Column(String(100), nullable=True)
    payment_gateway_payment_id = Column(String(100), nullable=True)
    payment_signature = Column(String(256), nullable=True)

    admin_comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    lines = relationship(
        "OrderLineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineModel.id",
    )

    def set_status(self, status: OrderStatus):
        now = _utcnow()
        self.status = status
        self.updated_at = now
        if status == OrderStatus.SHIPPED:
            self.shipped_at = now
        elif status == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif status == OrderStatus.CANCELLED:
            self.cancelled_at = now
