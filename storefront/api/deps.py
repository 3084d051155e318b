# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import ErrorCode, ErrorKind, Result
from storefront.services.cart_service import CartService
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.gateway_client import PaymentGatewayClient
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.utils.settings import REDIS_URL

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.INTEGRITY: 400,
    ErrorKind.TRANSIENT: 503,
}


@dataclass(frozen=True)
class Caller:
    """Identity asserted by the upstream auth layer."""

    user_id: str
    is_admin: bool


def get_caller(
    x_user_id: str = Header(..., min_length=1),
    x_user_role: str | None = Header(None),
) -> Caller:
    return Caller(user_id=x_user_id, is_admin=(x_user_role or "").lower() == "admin")


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": ErrorCode.UNAUTHORIZED.value, "message": "Administrator role required"},
        )
    return caller


def unwrap(result: Result):
    """Result -> value, or the matching HTTP error with a {code, message} body."""
    if result.ok:
        return result.value
    error = result.error
    raise HTTPException(
        status_code=_STATUS_BY_KIND[error.kind],
        detail={"code": error.code.value, "message": error.message},
    )


# service factories, overridable in tests via app.dependency_overrides

def get_lock_service() -> LockService | None:
    # no Redis configured: single-process deployment, rely on atomic SQL merges only
    return LockService() if REDIS_URL else None


def get_gateway() -> PaymentGatewayClient:
    return PaymentGatewayClient()


def get_cart_service(
    db: Session = Depends(get_db),
    lock_service: LockService | None = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, catalog=CatalogProvider(db), lock_service=lock_service)


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db=db, catalog=CatalogProvider(db))


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
) -> PaymentService:
    return PaymentService(db=db, gateway=gateway)
