# storefront/domain/errors.py
"""Domain error taxonomy and the result envelope returned by every service call.

Services raise `DomainError` subclasses internally; the transaction boundary
rolls back and converts them into a `Result` failure, so nothing crosses it
as an uncontrolled exception.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTHORIZATION = "authorization"
    INTEGRITY = "integrity"
    TRANSIENT = "transient"


class ErrorCode(str, Enum):
    EMPTY_CART = "EMPTY_CART"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    VARIANT_NOT_FOUND = "VARIANT_NOT_FOUND"
    CART_LINE_NOT_FOUND = "CART_LINE_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    TERMINAL_STATE = "TERMINAL_STATE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CART_BUSY = "CART_BUSY"
    UNAUTHORIZED = "UNAUTHORIZED"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class DomainError(Exception):
    code: ErrorCode
    kind: ErrorKind
    default_message = ""

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# validation: rejected before any mutation, fix the input and retry

class EmptyCart(DomainError):
    code = ErrorCode.EMPTY_CART
    kind = ErrorKind.VALIDATION
    default_message = "Cart is empty"


class InvalidQuantity(DomainError):
    code = ErrorCode.INVALID_QUANTITY
    kind = ErrorKind.VALIDATION
    default_message = "Quantity must be at least 1"


class ProductNotFound(DomainError):
    code = ErrorCode.PRODUCT_NOT_FOUND
    kind = ErrorKind.NOT_FOUND
    default_message = "Product not found"


class VariantNotFound(DomainError):
    code = ErrorCode.VARIANT_NOT_FOUND
    kind = ErrorKind.NOT_FOUND
    default_message = "Variant not found for this product"


class CartLineNotFound(DomainError):
    code = ErrorCode.CART_LINE_NOT_FOUND
    kind = ErrorKind.NOT_FOUND
    default_message = "Cart item not found"


class OrderNotFound(DomainError):
    code = ErrorCode.ORDER_NOT_FOUND
    kind = ErrorKind.NOT_FOUND
    default_message = "Order not found"


# conflict: live state disagrees, re-fetch before retrying

class OutOfStock(DomainError):
    code = ErrorCode.OUT_OF_STOCK
    kind = ErrorKind.CONFLICT
    default_message = "Insufficient stock available"


class InsufficientStock(DomainError):
    code = ErrorCode.INSUFFICIENT_STOCK
    kind = ErrorKind.CONFLICT
    default_message = "Insufficient stock"


class AlreadyCancelled(DomainError):
    code = ErrorCode.ALREADY_CANCELLED
    kind = ErrorKind.CONFLICT
    default_message = "Order is already cancelled"


class TerminalState(DomainError):
    code = ErrorCode.TERMINAL_STATE
    kind = ErrorKind.CONFLICT
    default_message = "Order is in a terminal state"


class InvalidTransition(DomainError):
    code = ErrorCode.INVALID_TRANSITION
    kind = ErrorKind.CONFLICT
    default_message = "Order status transition not allowed"


class CartBusy(DomainError):
    code = ErrorCode.CART_BUSY
    kind = ErrorKind.CONFLICT
    default_message = "Cart is being modified by another request"


class Unauthorized(DomainError):
    code = ErrorCode.UNAUTHORIZED
    kind = ErrorKind.AUTHORIZATION
    default_message = "Not allowed to act on this resource"


class SignatureMismatch(DomainError):
    code = ErrorCode.SIGNATURE_MISMATCH
    kind = ErrorKind.INTEGRITY
    default_message = "Payment signature verification failed"


# transient: the whole transaction was rolled back

class GatewayError(DomainError):
    code = ErrorCode.GATEWAY_ERROR
    kind = ErrorKind.TRANSIENT
    default_message = "Payment gateway request failed"


class StoreUnavailable(DomainError):
    code = ErrorCode.STORE_UNAVAILABLE
    kind = ErrorKind.TRANSIENT
    default_message = "Storage is unavailable, nothing was changed"


@dataclass(frozen=True)
class Error:
    code: ErrorCode
    message: str
    kind: ErrorKind

    @classmethod
    def from_exception(cls, exc: DomainError) -> "Error":
        return cls(code=exc.code, message=exc.message, kind=exc.kind)


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[Error] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, exc: DomainError) -> "Result[T]":
        return cls(error=Error.from_exception(exc))
