# storefront/services/gateway_client.py
from decimal import Decimal, ROUND_HALF_UP

import requests

from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    PAYMENT_CURRENCY,
    PAYMENT_GATEWAY_KEY_ID,
    PAYMENT_GATEWAY_KEY_SECRET,
    PAYMENT_GATEWAY_TIMEOUT,
    PAYMENT_GATEWAY_URL,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """199.99 -> 19999 (the gateway expects the smallest currency unit)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGatewayClient:
    """
    HTTP client for the payment gateway's order API (Razorpay-style).

    Only creates gateway orders; callback signatures are verified locally
    by PaymentService against the shared secret.
    """

    def __init__(
        self,
        base_url: str | None = None,
        key_id: str | None = None,
        key_secret: str | None = None,
        currency: str = PAYMENT_CURRENCY,
        timeout: int = PAYMENT_GATEWAY_TIMEOUT,
    ):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.key_id = key_id if key_id is not None else PAYMENT_GATEWAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else PAYMENT_GATEWAY_KEY_SECRET
        self.currency = currency
        self.timeout = timeout

    @http_retry()
    def create_gateway_order(self, order_id: int, amount: Decimal) -> str:
        url = f"{self.base_url}/orders"
        payload = {
            "amount": to_minor_units(amount),
            "currency": self.currency,
            "receipt": f"order_{order_id}",
            "payment_capture": 1,
        }
        logger.info(f"PaymentGatewayClient POST {url} receipt={payload['receipt']} amount={payload['amount']}")

        resp = requests.post(
            url,
            json=payload,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["id"]
