"""
Shared base for the api-sports.io family (basketball, football, hockey).

All three APIs share one envelope:

    {"get": ..., "errors": [] | {...}, "results": n, "response": [...]}

and are queried per calendar day. Each cycle fetches today; yesterday is
fetched alongside it unless this is a background refresh and the
YesterdayCache already holds that day.
"""
from __future__ import annotations

import abc
import asyncio
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from shared.models.domain import Match
from shared.models.keywords import DEFAULT_TABLES, KeywordTables
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from aggregator.cache import YesterdayCache
from ingest.normalization.fields import dig
from ingest.providers.base import (
    QUOTA_MESSAGE,
    BaseAdapter,
    FetchWindow,
    MalformedPayloadError,
    ProviderError,
    ProviderResponseError,
    QuotaExceededError,
    is_quota_message,
)

logger = get_logger(__name__)

API_KEY_HEADER = "x-apisports-key"
_QUOTA_ERROR_KEYS = ("requests", "rateLimit")


def api_sports_headers(api_key: str) -> dict[str, str]:
    return {API_KEY_HEADER: api_key}


def _error_messages(errors: Any) -> list[tuple[str, str]]:
    if isinstance(errors, dict):
        return [(str(k), str(v)) for k, v in errors.items()]
    if isinstance(errors, list):
        return [("", str(e)) for e in errors]
    return [("", str(errors))]


class ApiSportsAdapter(BaseAdapter):
    """Today/yesterday fetch, envelope checks and detail lookup by id."""

    path: str = "/games"

    def __init__(
        self,
        http_client: ProviderHTTPClient,
        yesterday_cache: YesterdayCache,
        today_limit: Optional[int] = None,
        yesterday_limit: Optional[int] = None,
        tables: KeywordTables = DEFAULT_TABLES,
        **kwargs: Any,
    ) -> None:
        super().__init__(http_client, **kwargs)
        self._yesterday_cache = yesterday_cache
        self._today_limit = today_limit
        self._yesterday_limit = yesterday_limit
        self._tables = tables

    # ── Translation ─────────────────────────────────────────────────────

    def records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected a JSON object", self.name)
        errors = payload.get("errors")
        if errors:
            messages = _error_messages(errors)
            text = "; ".join(f"{k}: {v}" if k else v for k, v in messages)
            if any(k in _QUOTA_ERROR_KEYS or is_quota_message(v) for k, v in messages):
                raise QuotaExceededError(QUOTA_MESSAGE, self.name)
            raise ProviderResponseError(text, self.name)
        response = payload.get("response")
        if not isinstance(response, list):
            raise MalformedPayloadError("'response' is missing or not a list", self.name)
        return response

    def adapt_record(self, record: Any, window: FetchWindow) -> Optional[Match]:
        if not self.keep(record, window):
            return None
        return self.build_match(record, window)

    @abc.abstractmethod
    def keep(self, record: dict[str, Any], window: FetchWindow) -> bool:
        """Provider-side pre-filter applied before translation."""
        ...

    @abc.abstractmethod
    def build_match(self, record: dict[str, Any], window: FetchWindow) -> Match:
        ...

    def limit(self, matches: list[Match], window: FetchWindow) -> list[Match]:
        cap = self._today_limit if window == FetchWindow.TODAY else self._yesterday_limit
        return matches if cap is None else matches[:cap]

    def status_text(self, status: Any) -> str:
        if not isinstance(status, dict):
            return ""
        return str(status.get("long") or status.get("short") or "")

    def is_not_started(self, status: Any) -> bool:
        text = self.status_text(status)
        short = str(dig(status, "short") or "").upper()
        code = str(dig(status, "code") or "").upper()
        return (
            "NS" in (short, code)
            or self._tables.not_started.matches(text)
            or self._tables.void.matches(text)
        )

    # ── Network ─────────────────────────────────────────────────────────

    def day_params(self, day: date) -> dict[str, Any]:
        return {"date": day.isoformat()}

    async def _fetch_day(self, day: date, window: FetchWindow) -> list[Match]:
        payload = await self.get_json(self.path, params=self.day_params(day))
        return self.adapt(payload, window)

    async def _fetch_matches(self, is_refresh: bool) -> list[Match]:
        today = self._clock().date()
        yesterday = today - timedelta(days=1)
        cached_yesterday = self._yesterday_cache.get(self.sport, yesterday)
        need_yesterday = not is_refresh or cached_yesterday is None

        calls = [self._fetch_day(today, FetchWindow.TODAY)]
        if need_yesterday:
            calls.append(self._fetch_day(yesterday, FetchWindow.YESTERDAY))
        results = await asyncio.gather(*calls, return_exceptions=True)

        today_result = results[0]
        if isinstance(today_result, BaseException):
            raise today_result

        yesterday_matches = cached_yesterday or []
        if need_yesterday:
            fetched = results[1]
            if isinstance(fetched, ProviderError):
                logger.warning(
                    "yesterday_fetch_failed",
                    provider=self.name,
                    sport=self.sport.value,
                    error=str(fetched),
                    served_cached=cached_yesterday is not None,
                )
            elif isinstance(fetched, BaseException):
                raise fetched
            else:
                self._yesterday_cache.put(self.sport, yesterday, fetched)
                yesterday_matches = fetched

        return [*today_result, *yesterday_matches]

    async def fetch_detail(self, provider_match_id: str) -> Optional[Any]:
        payload = await self.get_json(self.path, params={"id": provider_match_id})
        records = list(self.records(payload))
        return records[0] if records else None
