"""HTTP permission source backed by the permissions endpoint."""

from __future__ import annotations

import httpx
import structlog
from pydantic import ValidationError

from shipnorth.config import PermissionSettings
from shipnorth.domain.models.permission import PermissionRule
from shipnorth.domain.ports.services import PermissionSource, PermissionSourceError


logger = structlog.get_logger(__name__)


class HttpPermissionSource(PermissionSource):
    """Fetches a session's rules from ``GET /auth/permissions``."""

    def __init__(
        self,
        settings: PermissionSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = settings.permissions_url
        self._timeout = settings.request_timeout_seconds
        self._transport = transport

    async def fetch_rules(self, token: str) -> list[PermissionRule] | None:
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "permission_lookup_rejected",
                url=self._url,
                status_code=e.response.status_code,
            )
            raise PermissionSourceError(
                f"Permission lookup rejected with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("permission_lookup_failed", url=self._url, error=type(e).__name__)
            raise PermissionSourceError(f"Permission lookup failed: {type(e).__name__}") from e
        except ValueError as e:
            raise PermissionSourceError("Permission lookup returned invalid JSON") from e

        raw_rules = data.get("rules") if isinstance(data, dict) else None
        if not raw_rules:
            return None
        if not isinstance(raw_rules, list):
            logger.warning("permission_lookup_malformed", url=self._url, rules_type=type(raw_rules).__name__)
            raise PermissionSourceError("Permission lookup returned rules that are not a list")
        try:
            return [PermissionRule.from_dict(item) for item in raw_rules]
        except (KeyError, ValueError, ValidationError) as e:
            raise PermissionSourceError(f"Permission lookup returned malformed rules: {e}") from e
