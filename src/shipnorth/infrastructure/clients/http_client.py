"""Async HTTP client whose requests run through a circuit breaker."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from shipnorth.infrastructure.resilience.registry import CircuitBreakerRegistry


logger = structlog.get_logger(__name__)


class ProtectedHttpClient:
    """Thin ``httpx`` wrapper guarded by a named breaker.

    Transport failures and non-2xx responses count as breaker failures and
    surface as :class:`ExternalServiceError`. An open breaker surfaces as
    ``CircuitOpenError`` and no request is sent.
    """

    def __init__(
        self,
        base_url: str,
        breaker_name: str,
        registry: CircuitBreakerRegistry,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._breaker_name = breaker_name
        self._registry = registry
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    @property
    def breaker_name(self) -> str:
        return self._breaker_name

    async def __aenter__(self) -> ProtectedHttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async def send() -> httpx.Response:
            return await self._send(method, url, **kwargs)

        return await self._registry.execute(self._breaker_name, send)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                "external_call_failed",
                service=self._breaker_name, method=method, url=url, status_code=status_code,
            )
            raise ExternalServiceError(
                self._breaker_name,
                f"HTTP {status_code} from {method} {url}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(
                "external_call_failed", service=self._breaker_name, method=method, url=url,
                error=type(e).__name__,
            )
            raise ExternalServiceError(self._breaker_name, str(e) or type(e).__name__) from e
        return response


class ExternalServiceError(Exception):
    """Raised when an external dependency fails or answers with an error."""

    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(message)
