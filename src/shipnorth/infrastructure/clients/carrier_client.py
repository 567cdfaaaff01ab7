"""ShipStation carrier client."""

from __future__ import annotations

import base64

import httpx
import structlog
from pydantic import Field

from shipnorth.config import IntegrationSettings
from shipnorth.domain.models.base import ValueObject
from shipnorth.infrastructure.clients.http_client import ProtectedHttpClient
from shipnorth.infrastructure.resilience.circuit_breaker import CircuitOpenError
from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry, SHIPSTATION


logger = structlog.get_logger(__name__)

CARRIER_UNAVAILABLE_MESSAGE = (
    "Shipping rates are temporarily unavailable. Please try again shortly."
)


class Shipment(ValueObject):
    """What the carrier needs to quote or label a package."""

    package_id: str
    carrier_code: str = "canada_post"
    service_code: str | None = None
    from_postal_code: str
    to_postal_code: str
    to_country: str = "CA"
    weight_grams: int = Field(gt=0)
    length_cm: float | None = None
    width_cm: float | None = None
    height_cm: float | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "carrierCode": self.carrier_code,
            "fromPostalCode": self.from_postal_code,
            "toPostalCode": self.to_postal_code,
            "toCountry": self.to_country,
            "weight": {"value": self.weight_grams, "units": "grams"},
        }
        if self.service_code:
            payload["serviceCode"] = self.service_code
        if self.length_cm and self.width_cm and self.height_cm:
            payload["dimensions"] = {
                "units": "centimeters",
                "length": self.length_cm,
                "width": self.width_cm,
                "height": self.height_cm,
            }
        return payload


class ShippingRate(ValueObject):
    service_name: str
    service_code: str
    cost: float


class RateQuote(ValueObject):
    """Carrier rates, or an explanation of why none are available."""

    available: bool
    rates: tuple[ShippingRate, ...] = ()
    message: str = ""
    retry_after_seconds: float | None = None


class ShippingLabel(ValueObject):
    shipment_id: str
    tracking_number: str
    label_data: str = ""


class ShipStationClient(ProtectedHttpClient):
    """Carrier API client guarded by the ``shipstation`` breaker."""

    def __init__(
        self,
        settings: IntegrationSettings,
        registry: CircuitBreakerRegistry,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        credentials = base64.b64encode(f"{settings.shipstation_api_key}:".encode()).decode()
        super().__init__(
            base_url=settings.shipstation_base_url,
            breaker_name=SHIPSTATION,
            registry=registry,
            timeout=settings.request_timeout_seconds,
            headers={"Authorization": f"Basic {credentials}"},
            transport=transport,
        )

    async def get_rates(self, shipment: Shipment) -> list[ShippingRate]:
        response = await self.post("/shipments/getrates", json=shipment.to_payload())
        return [
            ShippingRate(
                service_name=item["serviceName"],
                service_code=item["serviceCode"],
                cost=float(item.get("shipmentCost", 0)) + float(item.get("otherCost", 0)),
            )
            for item in response.json()
        ]

    async def quote(self, shipment: Shipment) -> RateQuote:
        """Like :meth:`get_rates`, but degrades to an unavailable quote while the breaker is open."""
        try:
            rates = await self.get_rates(shipment)
        except CircuitOpenError as e:
            logger.info(
                "carrier_quote_deferred",
                package_id=shipment.package_id,
                retry_after_seconds=e.retry_after_seconds,
            )
            return RateQuote(
                available=False,
                message=CARRIER_UNAVAILABLE_MESSAGE,
                retry_after_seconds=e.retry_after_seconds,
            )
        return RateQuote(available=True, rates=tuple(rates))

    async def create_label(self, shipment: Shipment) -> ShippingLabel:
        response = await self.post("/shipments/createlabel", json=shipment.to_payload())
        data = response.json()
        return ShippingLabel(
            shipment_id=str(data["shipmentId"]),
            tracking_number=data["trackingNumber"],
            label_data=data.get("labelData", ""),
        )
