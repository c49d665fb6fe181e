"""
TCG Vault — Shared Async HTTP Client Base

Every upstream collaborator (card catalog, sealed pricing, CSV mirror,
image search) is a JSON-over-HTTP GET API. This base owns the httpx client
lifecycle and the retry loop:

- 429 and 5xx: exponential backoff, then retry
- network errors: exponential backoff, then retry
- other 4xx: raise httpx.HTTPStatusError immediately
- retries exhausted: RuntimeError chained from the last error
- quota exhausted: QuotaExceededError before the request is sent

Clients raise; the services that call them decide how to degrade.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from tcgvault.pipeline.quota import RequestQuota

logger = structlog.get_logger(__name__)


class BaseAPIClient:
    """
    Async context-managed JSON client with retry logic.

    Subclasses set `provider` (used as the log event prefix) and pass their
    base URL / headers / params through __init__.
    """

    provider = "upstream"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        default_params: dict[str, Any] | None = None,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        timeout: float = 30.0,
        quota: RequestQuota | None = None,
    ):
        self._base_url = base_url
        self._headers = headers or {}
        self._default_params = default_params or {}
        self._max_retries = max_retries
        self._base_backoff = base_backoff
        self._timeout = timeout
        self._quota = quota
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> BaseAPIClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def quota(self) -> RequestQuota | None:
        return self._quota

    async def _request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a GET request with retry logic and exponential backoff."""
        assert self._client is not None, "Client not initialized. Use 'async with'."

        if self._quota is not None:
            self._quota.consume()

        merged = {**self._default_params, **(params or {})}
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.get(path, params=merged or None)

                if response.status_code == 429:
                    wait_time = self._base_backoff * (2 ** attempt)
                    logger.warning(
                        f"{self.provider}_rate_limited",
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                    )
                    last_error = httpx.HTTPStatusError(
                        "rate limited", request=response.request, response=response
                    )
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.error(
                    f"{self.provider}_http_error",
                    status_code=e.response.status_code,
                    attempt=attempt + 1,
                    path=path,
                )
                if e.response.status_code >= 500:
                    wait_time = self._base_backoff * (2 ** attempt)
                    await asyncio.sleep(wait_time)
                    continue
                raise

            except httpx.RequestError as e:
                last_error = e
                logger.error(
                    f"{self.provider}_request_error",
                    error=str(e),
                    attempt=attempt + 1,
                    path=path,
                )
                wait_time = self._base_backoff * (2 ** attempt)
                await asyncio.sleep(wait_time)
                continue

        raise RuntimeError(
            f"{self.provider} API request failed after {self._max_retries + 1} attempts"
        ) from last_error
