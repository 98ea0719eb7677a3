"""
CricAPI adapter.
Fetches ``currentMatches`` pages concurrently and normalizes them to
canonical matches. CricAPI answers HTTP 200 even for failures; the
``status`` field is the real discriminator.
"""
from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

from shared.models.domain import CricketScore, Match
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import ADAPTER_FAILURES

from ingest.normalization.fields import parse_timestamp
from ingest.normalization.leagues import normalize_league
from ingest.providers.base import (
    QUOTA_MESSAGE,
    BaseAdapter,
    FetchWindow,
    MalformedPayloadError,
    ProviderError,
    ProviderResponseError,
    QuotaExceededError,
    is_not_found_message,
    is_quota_message,
)

logger = get_logger(__name__)

DEFAULT_PAGE_OFFSETS = (0, 25, 50, 75, 100)


def _failure_message(payload: dict[str, Any]) -> str:
    return str(payload.get("reason") or payload.get("message") or "Failed to fetch cricket data")


def cricket_scores(teams: Optional[list[str]], raw_score: Any) -> Optional[list[CricketScore]]:
    """
    Collapse CricAPI innings into at most one entry per team, aligned with
    ``teams``. A team's entry is its latest inning whose label names the team.
    When no inning names either team the first two innings are used as-is.
    """
    if raw_score is None or raw_score == "" or raw_score == []:
        return None
    if isinstance(raw_score, str):
        return [CricketScore(r=raw_score)]
    if isinstance(raw_score, dict):
        raw_score = [raw_score]
    innings = [inn for inn in raw_score if isinstance(inn, dict)]
    if not innings:
        return None

    def _entry(inn: dict[str, Any], team: Optional[str] = None) -> CricketScore:
        return CricketScore(
            team=team,
            r=inn.get("r"),
            w=inn.get("w"),
            o=inn.get("o"),
            inning=inn.get("inning"),
        )

    if teams:
        aligned: list[Optional[CricketScore]] = []
        for team in teams:
            label = team.lower()
            latest = None
            for inn in innings:
                inning_label = str(inn.get("inning") or "").lower()
                if inning_label and label in inning_label:
                    latest = inn
            aligned.append(_entry(latest, team) if latest is not None else None)
        if any(entry is not None for entry in aligned):
            return [entry or CricketScore(team=team) for entry, team in zip(aligned, teams)]

    return [_entry(inn) for inn in innings[:2]]


class CricketAdapter(BaseAdapter):
    """CricAPI ``currentMatches`` with a fixed concurrent page fan-out."""

    sport = Sport.CRICKET

    def __init__(
        self,
        http_client: ProviderHTTPClient,
        api_key: str,
        page_offsets: Iterable[int] = DEFAULT_PAGE_OFFSETS,
        **kwargs: Any,
    ) -> None:
        super().__init__(http_client, **kwargs)
        self._api_key = api_key
        self._offsets = tuple(page_offsets)

    # ── Translation ─────────────────────────────────────────────────────

    def records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected a JSON object", self.name)
        if payload.get("status") != "success":
            message = _failure_message(payload)
            if is_quota_message(message):
                raise QuotaExceededError(QUOTA_MESSAGE, self.name)
            raise ProviderResponseError(message, self.name)
        data = payload.get("data") or []
        if not isinstance(data, list):
            raise MalformedPayloadError("'data' is not a list", self.name)
        return data

    def adapt_record(self, record: Any, window: FetchWindow) -> Optional[Match]:
        match_id = record["id"]
        name = record.get("name") or ""
        series = record.get("series") or None
        series_id = record.get("series_id") or None
        teams = record.get("teams")
        if not name and teams and len(teams) == 2:
            name = f"{teams[0]} vs {teams[1]}"

        league = normalize_league(self.sport, f"{name} {series or ''}")
        if league is None:
            league = (series if series_id and series else None) or self.sport.default_league

        return Match(
            id=f"{self.sport.id_prefix}{match_id}",
            sport=self.sport,
            name=name,
            teams=teams,
            league=league,
            series=series,
            series_id=str(series_id) if series_id else None,
            venue=record.get("venue") or "TBD",
            date=parse_timestamp(record.get("dateTimeGMT") or record.get("date")),
            status=record.get("status") or "",
            match_started=record.get("matchStarted"),
            match_ended=record.get("matchEnded"),
            score=cricket_scores(teams, record.get("score")),
        )

    # ── Network ─────────────────────────────────────────────────────────

    async def _fetch_page(self, offset: int) -> list[Match]:
        payload = await self.get_json(
            "/currentMatches", params={"apikey": self._api_key, "offset": offset}
        )
        return self.adapt(payload)

    async def _fetch_matches(self, is_refresh: bool) -> list[Match]:
        pages = await asyncio.gather(
            *(self._fetch_page(offset) for offset in self._offsets),
            return_exceptions=True,
        )
        matches: list[Match] = []
        failures: list[BaseException] = []
        for offset, page in zip(self._offsets, pages):
            if isinstance(page, ProviderError):
                failures.append(page)
                ADAPTER_FAILURES.labels(sport=self.sport.value, reason="page").inc()
                logger.warning(
                    "cricket_page_failed",
                    offset=offset,
                    reason=type(page).__name__,
                    error=str(page),
                )
                continue
            if isinstance(page, BaseException):
                raise page
            matches.extend(page)

        if failures and len(failures) == len(self._offsets):
            if any(isinstance(f, QuotaExceededError) for f in failures):
                raise QuotaExceededError(QUOTA_MESSAGE, self.name)
            raise ProviderResponseError(
                f"all {len(failures)} cricket pages failed: {failures[0]}", self.name
            )
        return matches

    async def fetch_detail(self, provider_match_id: str) -> Optional[Any]:
        payload = await self.get_json(
            "/match_info", params={"apikey": self._api_key, "id": provider_match_id}
        )
        if not isinstance(payload, dict):
            raise MalformedPayloadError("expected a JSON object", self.name)
        if payload.get("status") != "success":
            message = _failure_message(payload)
            if is_not_found_message(message):
                return None
            if is_quota_message(message):
                raise QuotaExceededError(QUOTA_MESSAGE, self.name)
            raise ProviderResponseError(message, self.name)
        return payload.get("data") or None
