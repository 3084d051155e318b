# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends

from storefront.api.deps import (
    Caller,
    get_caller,
    get_order_service,
    get_payment_service,
    unwrap,
)
from storefront.domain.schemas import (
    OrderOut,
    PaymentOrderOut,
    PaymentVerificationIn,
    PaymentVerificationOut,
    ShippingInfo,
)
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: ShippingInfo,
    caller: Caller = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    """
    Places an order from the caller's cart.
    Stock is deducted and the cart emptied in the same transaction.
    """
    return OrderOut.model_validate(unwrap(svc.create_order(caller.user_id, payload)))


@router.get("", response_model=List[OrderOut])
def my_orders(
    caller: Caller = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    return [OrderOut.model_validate(o) for o in unwrap(svc.list_user_orders(caller.user_id))]


# declared before /{order_id} routes so the literal path wins
@router.post("/verify-payment", response_model=PaymentVerificationOut)
def verify_payment(
    payload: PaymentVerificationIn,
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Gateway callback relay. Authenticity comes from the signature alone,
    so no caller identity is required.
    """
    verification = unwrap(
        svc.verify_payment(
            order_id=payload.order_id,
            gateway_order_id=payload.gateway_order_id,
            gateway_payment_id=payload.gateway_payment_id,
            signature=payload.signature,
        )
    )
    return PaymentVerificationOut(
        order_id=verification.order_id,
        status=verification.status,
        replayed=verification.replayed,
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    caller: Caller = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    return OrderOut.model_validate(unwrap(svc.get_order(order_id, caller.user_id, caller.is_admin)))


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    caller: Caller = Depends(get_caller),
    svc: OrderService = Depends(get_order_service),
):
    return OrderOut.model_validate(unwrap(svc.cancel_order(order_id, caller.user_id, caller.is_admin)))


@router.post("/{order_id}/payment", response_model=PaymentOrderOut)
def create_payment(
    order_id: int,
    caller: Caller = Depends(get_caller),
    svc: PaymentService = Depends(get_payment_service),
):
    payment = unwrap(svc.create_payment(order_id, caller.user_id, caller.is_admin))
    return PaymentOrderOut(
        order_id=payment.order_id,
        gateway_order_id=payment.gateway_order_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
    )
