# storefront/domain/schemas.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.domain.order_status import OrderStatus


# ---------- cart ----------

class CartLineIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Catalog product id")
    variant_id: int | None = Field(None, gt=0, description="Catalog variant id, if the product has variants")
    quantity: int = Field(1, ge=1, le=100, description="Units to add (1-100)")


class CartLineQuantityIn(BaseModel):
    quantity: int = Field(..., description="New quantity, must be at least 1")


class CartLineOut(BaseModel):
    line_id: int
    product_id: int
    variant_id: int | None = None
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    available_stock: int | None = None


class CartOut(BaseModel):
    cart_id: int
    user_id: str
    lines: List[CartLineOut]
    total_amount: Decimal
    total_items: int
    last_updated: datetime


# ---------- orders ----------

class ShippingInfo(BaseModel):
    """Shipping and contact details captured when the order is placed."""

    shipping_address: str = Field(..., min_length=1, max_length=500)
    customer_phone: str = Field(..., min_length=5, max_length=32, pattern=r"^\+?[0-9 ()\-]+$")
    customer_email: EmailStr = Field(..., description="Contact email for order updates")


class OrderLineOut(BaseModel):
    line_id: int = Field(validation_alias="id")
    product_id: int
    variant_id: int | None = None
    product_name: str = Field(validation_alias="product_name_snapshot")
    variant_label: str | None = Field(None, validation_alias="variant_label_snapshot")
    quantity: int = Field(validation_alias="quantity_snapshot")
    unit_price: Decimal = Field(validation_alias="unit_price_snapshot")
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    user_id: str
    status: OrderStatus
    total_amount: Decimal
    shipping_address: str
    customer_phone: str
    customer_email: str
    payment_gateway_order_id: str | None = None
    payment_gateway_payment_id: str | None = None
    admin_comment: str | None = None
    created_at: datetime
    updated_at: datetime
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    lines: List[OrderLineOut]

    model_config = ConfigDict(from_attributes=True)


class OrderStatusUpdateIn(BaseModel):
    status: OrderStatus
    comment: str | None = Field(None, max_length=1000)


# ---------- payments ----------

class PaymentVerificationIn(BaseModel):
    order_id: int = Field(..., gt=0, description="Our order id")
    gateway_order_id: str = Field(..., min_length=1)
    gateway_payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class PaymentOrderOut(BaseModel):
    order_id: int
    gateway_order_id: str
    amount: Decimal
    currency: str
    status: OrderStatus


class PaymentVerificationOut(BaseModel):
    order_id: int
    status: OrderStatus
    replayed: bool = False


@dataclass(frozen=True)
class CatalogItem:
    """Live catalog data for a product or one of its variants."""

    product_id: int
    variant_id: int | None
    name: str
    variant_label: str | None
    price: Decimal
    stock: int

    def describe(self) -> str:
        if self.variant_label:
            return f"{self.name} ({self.variant_label})"
        return self.name


@dataclass(frozen=True)
class PaymentOrder:
    order_id: int
    gateway_order_id: str
    amount: Decimal
    currency: str
    status: OrderStatus


@dataclass(frozen=True)
class PaymentVerification:
    order_id: int
    user_id: str
    status: OrderStatus
    replayed: bool = False
