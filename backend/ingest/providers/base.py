"""
Abstract base class for provider adapters.

An adapter owns one upstream API for one sport. It has two halves:
- ``adapt(payload)``: pure translation of a decoded provider response into
  canonical Match records. A record that cannot be translated is skipped and
  counted; it never aborts the batch.
- ``fetch(is_refresh)``: network calls plus the failure policy. Any provider
  failure is logged, counted and returned as ``ProviderResult(success=False)``
  with no matches, so one sport's outage never reaches another.
"""
from __future__ import annotations

import abc
import json
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import httpx
from pydantic import ValidationError

from shared.models.domain import Match
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import ADAPTER_FAILURES, MALFORMED_RECORDS

logger = get_logger(__name__)

QUOTA_MESSAGE = "API daily limit exceeded. Please try again tomorrow or upgrade your API plan."
_QUOTA_MARKERS = ("limit", "exceeded", "blocking", "too many requests")
_NOT_FOUND_MARKERS = ("not found", "err_id_not_found")


# ── Errors ──────────────────────────────────────────────────────────────
class ProviderError(Exception):
    """Base class for upstream provider failures."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """Network failure or timeout talking to the provider."""


class ProviderResponseError(ProviderError):
    """Provider answered, but with a non-2xx status or a failure discriminator."""


class QuotaExceededError(ProviderResponseError):
    """Rate limit or daily request quota exhausted."""


class MalformedPayloadError(ProviderError):
    """Body was not JSON or not the expected envelope."""


def is_quota_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _QUOTA_MARKERS)


def is_not_found_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


class FetchWindow(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"


class ProviderResult:
    """Container for adapter fetch results with metadata."""

    def __init__(
        self,
        sport: Sport,
        success: bool,
        matches: Optional[list[Match]] = None,
        latency_ms: float = 0.0,
        error: Optional[str] = None,
        rate_limited: bool = False,
    ) -> None:
        self.sport = sport
        self.success = success
        self.matches = matches or []
        self.latency_ms = latency_ms
        self.error = error
        self.rate_limited = rate_limited

    def __repr__(self) -> str:
        return (
            f"ProviderResult(sport={self.sport.value}, success={self.success}, "
            f"matches={len(self.matches)}, error={self.error!r})"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseAdapter(abc.ABC):
    """Shared HTTP lifecycle, error translation and failure policy."""

    sport: Sport

    def __init__(
        self,
        http_client: ProviderHTTPClient,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._http = http_client
        self._clock = clock

    @property
    def name(self) -> str:
        return self._http.provider

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    # ── Translation ─────────────────────────────────────────────────────

    def adapt(self, payload: Any, window: FetchWindow = FetchWindow.TODAY) -> list[Match]:
        """Translate a decoded provider response into canonical matches."""
        matches: list[Match] = []
        for record in self.records(payload):
            try:
                match = self.adapt_record(record, window)
            except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
                MALFORMED_RECORDS.labels(sport=self.sport.value).inc()
                logger.warning(
                    "provider_record_skipped",
                    provider=self.name,
                    sport=self.sport.value,
                    error=str(exc),
                )
                continue
            if match is not None:
                matches.append(match)
        return self.limit(matches, window)

    @abc.abstractmethod
    def records(self, payload: Any) -> Iterable[Any]:
        """Validate the envelope and return its raw records."""
        ...

    @abc.abstractmethod
    def adapt_record(self, record: Any, window: FetchWindow) -> Optional[Match]:
        """Translate one record; None drops it without counting it as malformed."""
        ...

    def limit(self, matches: list[Match], window: FetchWindow) -> list[Match]:
        return matches

    # ── Network ─────────────────────────────────────────────────────────

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET and decode JSON, translating transport/HTTP failures into ProviderError."""
        try:
            resp = await self._http.get(path, params=params, sport=self.sport.value)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                raise QuotaExceededError(QUOTA_MESSAGE, self.name) from exc
            raise ProviderResponseError(f"HTTP error! status: {status}", self.name) from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(str(exc) or type(exc).__name__, self.name) from exc
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedPayloadError("response body is not valid JSON", self.name) from exc

    async def fetch(self, is_refresh: bool = False) -> ProviderResult:
        """
        Fetch and adapt the current match list.

        Wraps the provider-specific ``_fetch_matches`` with timing and the
        failure policy.
        """
        start = time.perf_counter()
        try:
            matches = await self._fetch_matches(is_refresh)
        except ProviderError as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            reason = type(exc).__name__
            ADAPTER_FAILURES.labels(sport=self.sport.value, reason=reason).inc()
            logger.error(
                "provider_fetch_failed",
                provider=self.name,
                sport=self.sport.value,
                reason=reason,
                error=str(exc),
            )
            return ProviderResult(
                sport=self.sport,
                success=False,
                latency_ms=latency_ms,
                error=str(exc),
                rate_limited=isinstance(exc, QuotaExceededError),
            )
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "provider_fetch_complete",
            provider=self.name,
            sport=self.sport.value,
            matches=len(matches),
            latency_ms=round(latency_ms, 2),
        )
        return ProviderResult(sport=self.sport, success=True, matches=matches, latency_ms=latency_ms)

    @abc.abstractmethod
    async def _fetch_matches(self, is_refresh: bool) -> list[Match]:
        """Provider-specific fetch; raise ProviderError on failure."""
        ...

    @abc.abstractmethod
    async def fetch_detail(self, provider_match_id: str) -> Optional[Any]:
        """
        Fetch the full scorecard/box-score for one match.

        Returns None when the provider does not know the id. Raises
        QuotaExceededError on quota exhaustion and ProviderError otherwise.
        """
        ...
