# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends

from storefront.api.deps import Caller, get_caller, get_cart_service, unwrap
from storefront.domain.schemas import CartLineIn, CartLineQuantityIn, CartOut
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    caller: Caller = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.get_cart(caller.user_id))


@router.post("/lines", response_model=CartOut)
def add_line(
    payload: CartLineIn,
    caller: Caller = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(
        svc.add_line(
            user_id=caller.user_id,
            product_id=payload.product_id,
            variant_id=payload.variant_id,
            quantity=payload.quantity,
        )
    )


@router.put("/lines/{line_id}", response_model=CartOut)
def set_line_quantity(
    line_id: int,
    payload: CartLineQuantityIn,
    caller: Caller = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.set_line_quantity(caller.user_id, line_id, payload.quantity))


@router.delete("/lines/{line_id}", response_model=CartOut)
def remove_line(
    line_id: int,
    caller: Caller = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.remove_line(caller.user_id, line_id))


@router.delete("", response_model=CartOut)
def clear_cart(
    caller: Caller = Depends(get_caller),
    svc: CartService = Depends(get_cart_service),
):
    return unwrap(svc.clear(caller.user_id))
