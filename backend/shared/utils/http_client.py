"""
Async HTTP client shared by the provider adapters.

Every attempt is timed and counted. Timeouts, transport errors, 5xx and 429
answers are retried up to ``max_retries`` attempts; any other 4xx goes
straight back to the adapter as ``httpx.HTTPStatusError``.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)

MAX_RETRY_AFTER_S = 10.0


def _retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class ProviderHTTPClient:
    """One pooled httpx client per provider, with retry and per-attempt metrics."""

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        backoff_s: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout_s = timeout_s or settings.provider_request_timeout_s
        self._attempts = max(1, max_retries or settings.provider_max_retries)
        self._backoff_s = backoff_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._timeout_s, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        sport: str = "unknown",
    ) -> httpx.Response:
        """
        GET ``path`` relative to the base URL.

        Raises:
            httpx.HTTPStatusError: non-retryable status, or a 429/5xx still
                present on the last attempt.
            httpx.TransportError: the last attempt failed in transport
                (``httpx.TimeoutException`` included).
        """
        if self._client is None:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        for attempt in range(1, self._attempts + 1):
            last_attempt = attempt == self._attempts
            delay = self._backoff_s * attempt
            started = time.perf_counter()
            outcome = "error"
            try:
                resp = await self._client.get(path, params=params)
                outcome = str(resp.status_code)
            except httpx.TransportError as exc:
                outcome = "timeout" if isinstance(exc, httpx.TimeoutException) else "error"
                logger.warning(
                    "provider_transport_error",
                    provider=self._provider,
                    path=path,
                    attempt=attempt,
                    error=str(exc) or type(exc).__name__,
                )
                if last_attempt:
                    raise
                await asyncio.sleep(delay)
                continue
            finally:
                self._observe(sport, outcome, time.perf_counter() - started)

            if _retryable_status(resp.status_code) and not last_attempt:
                if resp.status_code == 429:
                    delay = self._retry_after(resp)
                logger.warning(
                    "provider_retrying",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    attempt=attempt,
                    delay_s=delay,
                )
                await asyncio.sleep(delay)
                continue

            if resp.is_error:
                logger.error(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    attempt=attempt,
                )
            resp.raise_for_status()
            logger.debug(
                "provider_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                attempt=attempt,
            )
            return resp

        raise RuntimeError(f"{self._provider}: no attempt made for {path}")

    def _observe(self, sport: str, outcome: str, elapsed_s: float) -> None:
        PROVIDER_LATENCY.labels(provider=self._provider).observe(elapsed_s)
        PROVIDER_REQUESTS.labels(provider=self._provider, sport=sport, status=outcome).inc()

    def _retry_after(self, resp: httpx.Response) -> float:
        try:
            seconds = float(resp.headers.get("Retry-After", self._backoff_s * 2))
        except ValueError:
            seconds = self._backoff_s * 2
        return min(seconds, MAX_RETRY_AFTER_S)
