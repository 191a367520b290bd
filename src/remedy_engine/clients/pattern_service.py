"""Pattern distribution service client.

The pattern distribution service shares error patterns across services.
Endpoints consumed:

    GET  /patterns?service=<name>
    POST /patterns/update
    POST /patterns/delete
    POST /publish
    GET  /history?correlationId=<id>&start=<iso>&end=<iso>
    GET  /status

All payloads are JSON. Any non-2xx status is a hard failure of that call
and raises PatternServiceError. Transport errors (connection refused,
timeouts) are retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from remedy_engine.config.settings import PatternServiceConfig
from remedy_engine.exceptions import PatternServiceError
from remedy_engine.models.patterns import ErrorPattern

logger = logging.getLogger(__name__)


class PatternServiceClient:
    """Client for the pattern distribution service.

    Example:
        async with PatternServiceClient() as client:
            patterns = await client.get_patterns("checkout")
    """

    def __init__(
        self,
        config: PatternServiceConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or PatternServiceConfig()
        self._http_client = http_client

    async def __aenter__(self) -> PatternServiceClient:
        """Enter async context manager."""
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
            )
        return self._http_client

    async def _send_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> Any:
        """Send a request, retrying transport failures.

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            PatternServiceError: On non-2xx status or exhausted retries
        """
        client = self._ensure_client()
        attempts = self.config.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, path, params=params, json=payload)
            except httpx.TransportError as e:
                last_error = e
                logger.warning(
                    "Pattern service %s %s failed (attempt %d/%d): %s",
                    method,
                    path,
                    attempt,
                    attempts,
                    str(e),
                )
                if attempt < attempts:
                    await asyncio.sleep(self.config.retry_backoff_seconds * 2 ** (attempt - 1))
                continue

            if response.is_error:
                logger.error(
                    "Pattern service %s %s returned %d", method, path, response.status_code
                )
                raise PatternServiceError(
                    f"Pattern service {method} {path} returned {response.status_code}",
                    status_code=response.status_code,
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise PatternServiceError(
                    f"Pattern service {method} {path} returned invalid JSON"
                ) from e

        raise PatternServiceError(
            f"Pattern service {method} {path} unreachable: {last_error}"
        ) from last_error

    async def get_patterns(self, service_name: str) -> list[ErrorPattern]:
        """Fetch every pattern owned by a service.

        Accepts either a bare JSON list or ``{"patterns": [...]}``.
        """
        data = await self._send_request("GET", "/patterns", params={"service": service_name})
        items = data.get("patterns", []) if isinstance(data, dict) else data or []
        try:
            patterns = [ErrorPattern.model_validate(item) for item in items]
        except PydanticValidationError as e:
            raise PatternServiceError(f"Malformed pattern payload: {e}") from e

        logger.info("Fetched %d patterns for service %s", len(patterns), service_name)
        return patterns

    async def update_pattern(self, pattern: ErrorPattern) -> None:
        await self._send_request(
            "POST", "/patterns/update", payload=pattern.model_dump(mode="json")
        )

    async def delete_pattern(self, pattern_id: str, service_name: str) -> None:
        await self._send_request(
            "POST",
            "/patterns/delete",
            payload={"patternId": pattern_id, "serviceName": service_name},
        )

    async def publish_pattern(self, pattern: ErrorPattern) -> None:
        """Publish a newly created pattern to every subscriber."""
        await self._send_request("POST", "/publish", payload=pattern.model_dump(mode="json"))
        logger.info(
            "Published pattern %s for %s/%s",
            pattern.pattern_id,
            pattern.service_name,
            pattern.error_type,
        )

    async def get_history(
        self, correlation_id: str, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        """Fetch the pattern history recorded for a correlation id."""
        data = await self._send_request(
            "GET",
            "/history",
            params={
                "correlationId": correlation_id,
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
        )
        if isinstance(data, dict):
            return list(data.get("history", []))
        return list(data or [])

    async def get_status(self) -> dict[str, Any]:
        data = await self._send_request("GET", "/status")
        return data if isinstance(data, dict) else {"status": data}
