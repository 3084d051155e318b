# storefront/api/routers/admin_orders.py
from typing import List

from fastapi import APIRouter, Depends

from storefront.api.deps import Caller, get_order_service, require_admin, unwrap
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import OrderOut, OrderStatusUpdateIn
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get("", response_model=List[OrderOut])
def list_orders(
    status: OrderStatus | None = None,
    _: Caller = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    return [OrderOut.model_validate(o) for o in unwrap(svc.list_orders(status))]


@router.put("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdateIn,
    _: Caller = Depends(require_admin),
    svc: OrderService = Depends(get_order_service),
):
    return OrderOut.model_validate(
        unwrap(svc.update_order_status(order_id, payload.status, payload.comment))
    )
