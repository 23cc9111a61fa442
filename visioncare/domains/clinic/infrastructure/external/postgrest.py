# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Clinic)
# Description: Base async client for Supabase/PostgREST stores.
# ============================================================================
"""PostgREST Client.

Both external stores (scheduling system and central customer registry) are
Supabase projects exposing PostgREST. This base client handles
authentication headers, the circuit breaker and the mapping of HTTP
failures to the domain error taxonomy:

- transport errors, timeouts, 5xx, open circuit -> UpstreamError
- 409 / Postgres 23505 (unique violation)       -> ConflictError
- any other 4xx                                  -> UpstreamError
- 2xx with a body that is not JSON               -> UpstreamError
"""

import logging
import re
from typing import Any

import httpx

from visioncare.core.domain.exceptions import ConflictError, UpstreamError

from .resilience import CircuitBreaker, CircuitBreakerConfig, CircuitOpenError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

_DUPLICATE_KEY = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>[^)]*)\)")


class PostgRESTServerError(Exception):
    """5xx answer; counts as a failure for the circuit breaker."""

    def __init__(self, response: httpx.Response):
        self.status_code = response.status_code
        super().__init__(f"HTTP {response.status_code}: {response.text[:200]}")


class PostgRESTClient:
    """Async client for one PostgREST endpoint."""

    def __init__(
        self,
        service: str,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        circuit_breaker_config: CircuitBreakerConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            service: Service name used in errors and logs.
            base_url: Supabase project URL (``/rest/v1`` is appended).
            api_key: Supabase API key.
            timeout: Request timeout in seconds.
            circuit_breaker_config: Optional breaker thresholds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._circuit_breaker = CircuitBreaker(
            service,
            circuit_breaker_config,
            trip_on=(httpx.RequestError, PostgRESTServerError),
        )
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Any = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        """Call a table endpoint and return the rows of the answer.

        Raises:
            ConflictError: On a unique violation.
            UpstreamError: On any other failure.
        """
        try:
            response = await self._circuit_breaker.call(self._send, method, table, params, json, prefer)
        except CircuitOpenError as e:
            logger.warning(f"{self.service}: {e}")
            raise UpstreamError(self.service, f"{self.service} is temporarily unavailable", e) from e
        except httpx.RequestError as e:
            logger.error(f"{self.service}: request error on {method} {table}: {e}")
            raise UpstreamError(self.service, f"Could not reach {self.service}", e) from e
        except PostgRESTServerError as e:
            logger.error(f"{self.service}: server error on {method} {table}: {e}")
            raise UpstreamError(self.service, f"{self.service} failed with HTTP {e.status_code}", e) from e

        if response.status_code >= 400:
            self._raise_client_error(response, table)

        if not response.content:
            return []
        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"{self.service}: invalid response body on {method} {table}: {response.text[:200]}")
            raise UpstreamError(self.service, f"{self.service} returned an invalid response body", e) from e
        if isinstance(payload, dict):
            return [payload]
        if not isinstance(payload, list):
            raise UpstreamError(self.service, f"{self.service} returned an unexpected response body")
        return payload

    async def _send(
        self,
        method: str,
        table: str,
        params: Any,
        json: Any,
        prefer: str | None,
    ) -> httpx.Response:
        client = await self._get_client()
        headers = {"Prefer": prefer} if prefer else None
        response = await client.request(method, f"/{table}", params=params, json=json, headers=headers)
        if response.status_code >= 500:
            raise PostgRESTServerError(response)
        return response

    def _raise_client_error(self, response: httpx.Response, table: str) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = str(body.get("code", ""))
        message = body.get("message") or response.text[:200]
        if response.status_code == 409 or code == UNIQUE_VIOLATION:
            match = _DUPLICATE_KEY.search(str(body.get("details", "")))
            field_name = match.group("field") if match else "key"
            value = match.group("value") if match else ""
            raise ConflictError(table, field_name, value, message=f"{self.service}: {message}")

        logger.error(f"{self.service}: HTTP {response.status_code} on {table}: {message}")
        raise UpstreamError(self.service, f"{self.service} rejected the request: {message}")
