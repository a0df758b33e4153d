"""Async HTTP client for the Omie ERP API.

Every Omie call is a JSON POST with the same envelope::

    {"call": "ListarClientes", "app_key": "...", "app_secret": "...",
     "param": [{...}]}

Responsibilities:
- Rate limiting through a shared ``RateLimiter``
- Retry with exponential backoff and jitter on transport errors, 429 and 5xx
- Immediate failure on any other 4xx
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import httpx

from app.core.config import Settings
from app.core.exceptions import OmieApiError, OmieRetriesExhaustedError
from app.core.logging import get_logger
from app.services.omie.rate_limiter import RateLimiter

logger = get_logger(__name__)


def is_retryable_status(status_code: int) -> bool:
    """429 and every 5xx are transient; other statuses are final."""
    return status_code == 429 or status_code >= 500


class OmieClient:
    """Low-level Omie client. One instance per process."""

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        limiter: RateLimiter,
        http: httpx.AsyncClient,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_jitter: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.app_key = app_key
        self.app_secret = app_secret
        self.limiter = limiter
        self.http = http
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OmieClient":
        """Build a client (and its HTTP pool) from application settings."""
        limiter = limiter or RateLimiter(
            max_concurrent=config.omie_max_concurrent,
            min_interval=config.omie_min_request_interval,
        )
        http = httpx.AsyncClient(
            base_url=config.omie_base_url,
            timeout=config.omie_request_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        return cls(
            app_key=config.omie_app_key,
            app_secret=config.omie_app_secret,
            limiter=limiter,
            http=http,
            max_retries=config.omie_max_retries,
            base_delay=config.omie_retry_base_delay,
            max_jitter=config.omie_retry_max_jitter,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "OmieClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ─── Calls ───

    def backoff_delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)."""
        return self.base_delay * (2 ** (retry - 1)) + random.uniform(0, self.max_jitter)

    async def call(
        self,
        endpoint: str,
        call: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Issue one Omie call and return the parsed JSON response.

        Raises:
            OmieApiError: on a 4xx other than 429 (never retried).
            OmieRetriesExhaustedError: when every attempt hit a transient error.
        """
        body = {
            "call": call,
            "app_key": self.app_key,
            "app_secret": self.app_secret,
            "param": [params],
        }
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Omie %s retry %d/%d in %.2fs (%s)",
                    call,
                    attempt,
                    self.max_retries,
                    delay,
                    last_error,
                )
                await self._sleep(delay)

            async with self.limiter.slot():
                try:
                    response = await self.http.post(endpoint, json=body)
                except httpx.TransportError as exc:
                    last_error = exc
                    continue

            if response.is_success:
                return response.json()

            if not is_retryable_status(response.status_code):
                logger.error(
                    "Omie %s rejected with HTTP %d", call, response.status_code
                )
                raise OmieApiError(response.status_code, response.text)

            last_error = OmieApiError(response.status_code, response.text)

        raise OmieRetriesExhaustedError(self.max_retries + 1, last_error)
