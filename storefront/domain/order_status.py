# storefront/domain/order_status.py
"""Order lifecycle.

    Pending -> Confirmed | PaymentFailed
    PaymentFailed -> Pending            (payment re-initiated)
    PaymentFailed -> Confirmed          (late genuine callback for the stored gateway order)
    Confirmed -> Processing -> Shipped -> Delivered
    any non-terminal -> Cancelled       (stock restitution)
    Confirmed | Processing | Shipped -> Refunded

Delivered, Cancelled and Refunded are terminal.
"""
from enum import Enum

from storefront.domain.errors import AlreadyCancelled, InvalidTransition, TerminalState


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAYMENT_FAILED = "PaymentFailed"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_FAILED: {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

# only payment reconciliation / payment initiation may enter these
RECONCILIATION_TARGETS = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED}
)

REFUNDABLE_FROM = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED})


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: OrderStatus, target: OrderStatus):
    """Guard for transitions driven by payment events."""
    if is_terminal(current):
        raise TerminalState(f"Order is {current.value}; no further transitions are allowed")
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot move order from {current.value} to {target.value}")


def ensure_cancellable(current: OrderStatus):
    if current == OrderStatus.CANCELLED:
        raise AlreadyCancelled()
    if is_terminal(current):
        raise TerminalState(f"{current.value} orders cannot be cancelled")


def ensure_admin_transition(current: OrderStatus, target: OrderStatus):
    """Administrative status writes skip adjacency checks, within limits.

    Terminal states stay terminal, payment-owned states cannot be forced and
    a refund needs a captured payment.
    """
    if is_terminal(current):
        raise TerminalState(f"Order is {current.value}; no further transitions are allowed")
    if target in RECONCILIATION_TARGETS:
        raise InvalidTransition(f"{target.value} is set by payment processing only")
    if target == OrderStatus.REFUNDED and current not in REFUNDABLE_FROM:
        raise InvalidTransition(f"Cannot refund an order that is {current.value}")
