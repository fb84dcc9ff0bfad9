"""
Payment gateway client.

Creates payment intents for online methods (card, M-Pesa, Pesapal) and
issues offline references for cash on delivery and bank transfer. The
gateway later confirms or fails the payment through the signed webhook.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from libs.common.config import get_settings
from libs.common.errors import ExternalServiceError
from libs.common.logging import get_logger
from services.orders_service.models import PaymentMethod

logger = get_logger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class PaymentIntent:
    """Result of asking the gateway to collect an order's total."""

    reference: str
    client_secret: Optional[str] = None  # None for offline methods


class PaymentGateway(Protocol):
    async def create_intent(
        self,
        *,
        reference: str,
        amount_cents: int,
        currency: str,
        method: PaymentMethod,
        email: Optional[str] = None,
    ) -> PaymentIntent: ...


def offline_reference(method: PaymentMethod, order_reference: str) -> str:
    prefix = "COD" if method == PaymentMethod.COD else "BANK"
    return f"{prefix}-{order_reference}"


def sign_payload(raw_body: bytes, secret: Optional[str] = None) -> str:
    """HMAC-SHA512 hex digest the gateway sends in ``x-gateway-signature``."""
    key = (secret or settings.PAYMENT_GATEWAY_WEBHOOK_SECRET).encode("utf-8")
    return hmac.new(key, raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: str) -> bool:
    return hmac.compare_digest(sign_payload(raw_body), signature)


class HttpPaymentGateway:
    """Async client for the payment gateway's intent API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_URL).rstrip("/")
        self.secret_key = secret_key or settings.PAYMENT_GATEWAY_SECRET_KEY
        if not self.secret_key:
            raise ValueError("PAYMENT_GATEWAY_SECRET_KEY is required")
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self._headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, endpoint: str, json_data: dict) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method, url=url, headers=self._headers, json=json_data
                )
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Payment gateway unreachable: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Payment gateway error: %s - %s", response.status_code, response.text
            )
            raise ExternalServiceError(
                f"Payment gateway returned {response.status_code}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ExternalServiceError("Payment gateway returned invalid JSON") from exc

    async def create_intent(
        self,
        *,
        reference: str,
        amount_cents: int,
        currency: str,
        method: PaymentMethod,
        email: Optional[str] = None,
    ) -> PaymentIntent:
        if method.is_offline:
            return PaymentIntent(reference=offline_reference(method, reference))

        data = await self._request(
            "POST",
            "/intents",
            {
                "reference": reference,
                "amount": amount_cents,
                "currency": currency,
                "method": method.value,
                "email": email,
            },
        )
        intent = data.get("data") or {}
        client_secret = intent.get("client_secret")
        if not client_secret:
            raise ExternalServiceError("Payment gateway did not return a client secret")

        logger.info(
            "Created payment intent %s for %s",
            intent.get("reference", reference),
            method.value,
            extra={"extra_fields": {"reference": reference, "amount": amount_cents}},
        )
        return PaymentIntent(
            reference=intent.get("reference", reference), client_secret=client_secret
        )


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with an in-memory gateway."""
    return HttpPaymentGateway()
