# storefront/services/payment_service.py
import hashlib
import hmac

from requests import RequestException
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import (
    ErrorCode,
    GatewayError,
    InvalidTransition,
    OrderNotFound,
    Result,
    SignatureMismatch,
    TerminalState,
)
from storefront.domain.order_status import OrderStatus, ensure_transition, is_terminal
from storefront.domain.schemas import PaymentOrder, PaymentVerification
from storefront.repos.order_repo import OrderRepo
from storefront.services.gateway_client import PaymentGatewayClient
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import authorize
from storefront.services.unit_of_work import run_in_transaction
from storefront.utils.settings import PAYMENT_GATEWAY_KEY_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAYABLE_STATES = frozenset({OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED})


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Hex HMAC-SHA256 of "<gateway order id>|<gateway payment id>"."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentService:
    """
    Payment initiation and gateway callback reconciliation.

    A callback is never trusted on its own word: the signature is recomputed
    with the shared secret before the order may become Confirmed.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        key_secret: str | None = None,
        notifier: NotificationService | None = None,
    ):
        secret = key_secret if key_secret is not None else PAYMENT_GATEWAY_KEY_SECRET
        if not secret:
            raise ValueError("Payment gateway secret is not configured")

        self.db = db
        self.repo = OrderRepo(db)
        self.gateway = gateway
        self.key_secret = secret
        self.notifier = notifier or NotificationService()

    def create_payment(
        self,
        order_id: int,
        acting_user_id: str | None,
        is_admin: bool = False,
    ) -> Result[PaymentOrder]:
        """Open a gateway order for an unpaid order.

        Also the retry path: a PaymentFailed order goes back to Pending.
        """
        checked = run_in_transaction(
            self.db,
            lambda: self._payable_order(order_id, acting_user_id, is_admin),
            f"Payment initiation for order {order_id}",
        )
        if not checked.ok:
            return checked
        amount = checked.value.total_amount

        # network call stays outside any DB transaction
        try:
            gateway_order_id = self.gateway.create_gateway_order(order_id, amount)
        except RequestException as e:
            logger.error(f"Gateway order creation failed for order {order_id}: {e}")
            return Result.failure(GatewayError(f"Payment gateway request failed: {e}"))

        def record():
            order = self._payable_order(order_id, acting_user_id, is_admin, for_update=True)
            if order.status == OrderStatus.PAYMENT_FAILED:
                ensure_transition(order.status, OrderStatus.PENDING)
                order.set_status(OrderStatus.PENDING)
                logger.info(f"Order {order_id} re-entered Pending for a new payment attempt")
            order.payment_gateway_order_id = gateway_order_id
            return PaymentOrder(
                order_id=order.id,
                gateway_order_id=gateway_order_id,
                amount=order.total_amount,
                currency=self.gateway.currency,
                status=order.status,
            )

        return run_in_transaction(self.db, record, f"Payment initiation for order {order_id}")

    def verify_payment(
        self,
        order_id: int,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> Result[PaymentVerification]:
        result = run_in_transaction(
            self.db,
            lambda: self._confirm(order_id, gateway_order_id, gateway_payment_id, signature),
            f"Payment verification for order {order_id}",
        )

        if result.ok:
            if not result.value.replayed:
                self.notifier.payment_confirmed(result.value.user_id, order_id)
            return result

        if result.error.code in (ErrorCode.SIGNATURE_MISMATCH, ErrorCode.STORE_UNAVAILABLE):
            # leave no ambiguity: the attempt failed, the order says so
            self._mark_payment_failed(order_id)
        return result

    # internals

    def _load(self, order_id: int, for_update: bool = False) -> OrderModel:
        order = self.repo.get_order(order_id, for_update=for_update)
        if not order:
            raise OrderNotFound()
        return order

    def _payable_order(
        self,
        order_id: int,
        acting_user_id: str | None,
        is_admin: bool,
        for_update: bool = False,
    ) -> OrderModel:
        order = self._load(order_id, for_update=for_update)
        authorize(order, acting_user_id, is_admin)
        if is_terminal(order.status):
            raise TerminalState(f"Order is {order.status.value}; it can no longer be paid")
        if order.status not in PAYABLE_STATES:
            raise InvalidTransition(f"Order is {order.status.value}; payment already received")
        return order

    def _signature_valid(self, order: OrderModel, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        # only the gateway order opened for this order may confirm it
        if not order.payment_gateway_order_id or order.payment_gateway_order_id != gateway_order_id:
            return False
        expected = compute_signature(self.key_secret, gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode(), signature.encode())

    def _confirm(self, order_id: int, gateway_order_id: str, gateway_payment_id: str, signature: str) -> PaymentVerification:
        order = self._load(order_id, for_update=True)

        if (
            order.status == OrderStatus.CONFIRMED
            and order.payment_gateway_payment_id == gateway_payment_id
            and order.payment_signature == signature
        ):
            logger.info(f"Payment {gateway_payment_id} for order {order_id} already confirmed, replay ignored")
            return PaymentVerification(
                order_id=order.id, user_id=order.user_id, status=order.status, replayed=True
            )

        if not self._signature_valid(order, gateway_order_id, gateway_payment_id, signature):
            logger.warning(
                f"Payment signature mismatch for order {order_id} "
                f"(gateway order {gateway_order_id}, payment {gateway_payment_id})"
            )
            raise SignatureMismatch()

        ensure_transition(order.status, OrderStatus.CONFIRMED)

        order.payment_gateway_order_id = gateway_order_id
        order.payment_gateway_payment_id = gateway_payment_id
        order.payment_signature = signature
        order.set_status(OrderStatus.CONFIRMED)
        logger.info(f"Order {order_id} confirmed by payment {gateway_payment_id}")

        return PaymentVerification(order_id=order.id, user_id=order.user_id, status=order.status)

    def _mark_payment_failed(self, order_id: int):
        def action():
            order = self._load(order_id, for_update=True)
            # only an order still waiting for its payment can fail it
            if order.status != OrderStatus.PENDING:
                return order
            order.set_status(OrderStatus.PAYMENT_FAILED)
            logger.warning(f"Order {order_id} moved to PaymentFailed")
            return order

        outcome = run_in_transaction(self.db, action, f"Marking payment failed for order {order_id}")
        if not outcome.ok:
            logger.error(f"Could not mark order {order_id} as PaymentFailed: {outcome.error.message}")
