"""Stripe payment gateway client."""

from __future__ import annotations

import httpx

from shipnorth.config import IntegrationSettings
from shipnorth.domain.models.base import ValueObject
from shipnorth.infrastructure.clients.http_client import ProtectedHttpClient
from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry, STRIPE


class PaymentIntent(ValueObject):
    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str = ""


class StripeClient(ProtectedHttpClient):
    """Payment API client guarded by the ``stripe`` breaker."""

    def __init__(
        self,
        settings: IntegrationSettings,
        registry: CircuitBreakerRegistry,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=settings.stripe_base_url,
            breaker_name=STRIPE,
            registry=registry,
            timeout=settings.request_timeout_seconds,
            headers={"Authorization": f"Bearer {settings.stripe_api_key}"},
            transport=transport,
        )

    async def create_payment_intent(
        self, amount_cents: int, currency: str, customer_id: str,
    ) -> PaymentIntent:
        response = await self.post(
            "/v1/payment_intents",
            data={
                "amount": str(amount_cents),
                "currency": currency.lower(),
                "metadata[customer_id]": customer_id,
            },
        )
        data = response.json()
        return PaymentIntent(
            id=data["id"],
            status=data["status"],
            amount_cents=int(data["amount"]),
            currency=data["currency"],
            client_secret=data.get("client_secret", ""),
        )
