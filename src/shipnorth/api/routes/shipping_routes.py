"""Shipping rate quotes from the carrier integration."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from shipnorth.api.dependencies.auth import require_ability
from shipnorth.api.dependencies.services import get_service_container, ServiceContainer
from shipnorth.domain.models.permission import Action, Subject
from shipnorth.domain.models.user import User
from shipnorth.infrastructure.clients.carrier_client import RateQuote, Shipment


router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post("/rates", response_model=RateQuote)
async def quote_rates(
    shipment: Shipment,
    _user: Annotated[User, Depends(require_ability(Action.CREATE, Subject.PACKAGE))],
    container: Annotated[ServiceContainer, Depends(get_service_container)],
) -> RateQuote:
    """Carrier rates for a package; degrades to an unavailable quote when the carrier is down."""
    return await container.shipstation_client.quote(shipment)
