"""Aggregation service: fallback law, curated merge, filtering, caps and detail lookups."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from shared.config import Settings
from shared.models.domain import CricketScore, FootballScore, Match
from shared.models.enums import DetailSource, PlayState, Sport
from shared.models.keywords import DEFAULT_TABLES
from shared.utils.cache_store import MemoryCacheStore

from aggregator.cache import ResilientCache
from aggregator.service import AggregationService, build_aggregation_service
from ingest.providers.base import QUOTA_MESSAGE, ProviderResult, QuotaExceededError
from ingest.providers.registry import AdapterRegistry

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeAdapter:
    """Stands in for a provider adapter; results are set per test."""

    def __init__(self, sport: Sport, matches: Optional[list[Match]] = None, detail: Any = None) -> None:
        self.sport = sport
        self.matches = matches or []
        self.success = True
        self.raises: Optional[Exception] = None
        self.detail = detail
        self.detail_calls: list[str] = []
        self.refresh_flags: list[bool] = []

    @property
    def name(self) -> str:
        return f"fake_{self.sport.value}"

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def fetch(self, is_refresh: bool = False) -> ProviderResult:
        self.refresh_flags.append(is_refresh)
        if self.raises is not None:
            raise self.raises
        if not self.success:
            return ProviderResult(sport=self.sport, success=False, error="boom")
        return ProviderResult(sport=self.sport, success=True, matches=list(self.matches))

    async def fetch_detail(self, provider_match_id: str) -> Any:
        self.detail_calls.append(provider_match_id)
        if isinstance(self.detail, Exception):
            raise self.detail
        return self.detail


def cricket(match_id: str, status: str, scored: bool = True, **kwargs: Any) -> Match:
    fields: dict[str, Any] = {
        "id": match_id,
        "sport": Sport.CRICKET,
        "name": f"Side A vs Side B, {match_id}",
        "teams": ["Side A", "Side B"],
        "status": status,
        "date": NOW - timedelta(hours=3),
        "score": [CricketScore(team="Side A", r=180, w=4, o=20), CricketScore(team="Side B", r=150, w=9, o=20)]
        if scored else None,
    }
    fields.update(kwargs)
    return Match(**fields)


def football(match_id: str, status: str = "Second Half", **kwargs: Any) -> Match:
    fields: dict[str, Any] = {
        "id": match_id,
        "sport": Sport.FOOTBALL,
        "name": f"Home vs Away {match_id}",
        "teams": ["Home", "Away"],
        "status": status,
        "date": NOW - timedelta(hours=1),
        "score": [FootballScore(team="Home", goals=1), FootballScore(team="Away", goals=0)],
    }
    fields.update(kwargs)
    return Match(**fields)


def make_service(
    *adapters: FakeAdapter,
    curated: Optional[list[dict[str, Any]]] = None,
    **settings: Any,
) -> AggregationService:
    return AggregationService(
        AdapterRegistry({a.sport: a for a in adapters}),
        ResilientCache(MemoryCacheStore()),
        curated_entries=curated,
        settings=Settings(**settings),
        clock=lambda: NOW,
    )


# ── Fallback law ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_failed_fetch_serves_last_completed_snapshot() -> None:
    adapter = FakeAdapter(Sport.CRICKET, [cricket("cr-1", "Side A won by 30 runs"), cricket("cr-2", "Live")])
    service = make_service(adapter)

    first = await service.fetch_all_sports_matches()
    assert {m.id for m in first.cricket} == {"cr-1", "cr-2"}
    assert first.fallbacks == []

    adapter.success = False
    second = await service.fetch_all_sports_matches(is_refresh=True)
    assert [m.id for m in second.cricket] == ["cr-1"]
    assert second.cricket[0].play_state == PlayState.COMPLETED
    assert second.cricket[0].score == first.cricket[[m.id for m in first.cricket].index("cr-1")].score
    assert second.fallbacks == [Sport.CRICKET]
    assert adapter.refresh_flags == [False, True]


@pytest.mark.asyncio
async def test_empty_fetch_also_falls_back() -> None:
    adapter = FakeAdapter(Sport.CRICKET, [cricket("cr-1", "Side A won by 30 runs")])
    service = make_service(adapter)
    await service.fetch_all_sports_matches()

    adapter.matches = []
    result = await service.fetch_all_sports_matches()
    assert [m.id for m in result.cricket] == ["cr-1"]


@pytest.mark.asyncio
async def test_failure_without_snapshot_is_empty() -> None:
    adapter = FakeAdapter(Sport.CRICKET)
    adapter.success = False
    result = await make_service(adapter).fetch_all_sports_matches()
    assert result.cricket == []
    assert result.all == []
    assert result.fallbacks == []


@pytest.mark.asyncio
async def test_one_sport_crashing_leaves_others_intact() -> None:
    broken = FakeAdapter(Sport.CRICKET)
    broken.raises = RuntimeError("unexpected")
    healthy = FakeAdapter(Sport.FOOTBALL, [football("fb-1")])

    result = await make_service(broken, healthy).fetch_all_sports_matches(cycle_id=7)

    assert result.cricket == []
    assert [m.id for m in result.football] == ["fb-1"]
    assert result.football[0].play_state == PlayState.LIVE
    assert result.cycle_id == 7
    assert [m.id for m in result.all] == ["fb-1"]


# ── Snapshot reuse ──────────────────────────────────────────────────────

def clocked_service(adapter: FakeAdapter, ticks: list[float]) -> AggregationService:
    """Service whose cache store expires entries on the ``ticks[0]`` clock."""
    return AggregationService(
        AdapterRegistry({adapter.sport: adapter}),  # type: ignore[dict-item]
        ResilientCache(MemoryCacheStore(clock=lambda: ticks[0]), snapshot_ttl_s=120),
        settings=Settings(),
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_background_refresh_reuses_valid_snapshot() -> None:
    ticks = [0.0]
    adapter = FakeAdapter(Sport.FOOTBALL, [football("fb-1")])
    service = clocked_service(adapter, ticks)
    await service.fetch_all_sports_matches()
    adapter.matches = [football("fb-2")]

    ticks[0] = 60.0
    reused = await service.fetch_all_sports_matches(is_refresh=True, reuse_snapshot=True)
    assert [m.id for m in reused.football] == ["fb-1"]
    assert reused.football[0].play_state == PlayState.LIVE
    assert reused.fallbacks == []
    assert adapter.refresh_flags == [False]

    # without reuse the adapter is asked even while the snapshot is valid
    fresh = await service.fetch_all_sports_matches(is_refresh=True)
    assert [m.id for m in fresh.football] == ["fb-2"]
    assert adapter.refresh_flags == [False, True]


@pytest.mark.asyncio
async def test_reused_snapshot_expires_on_schedule() -> None:
    ticks = [0.0]
    adapter = FakeAdapter(Sport.FOOTBALL, [football("fb-1")])
    service = clocked_service(adapter, ticks)
    await service.fetch_all_sports_matches()

    ticks[0] = 100.0
    await service.fetch_all_sports_matches(is_refresh=True, reuse_snapshot=True)
    assert adapter.refresh_flags == [False]

    # reuse at t=100 did not push the expiry past t=120
    ticks[0] = 121.0
    adapter.matches = [football("fb-2")]
    result = await service.fetch_all_sports_matches(is_refresh=True, reuse_snapshot=True)
    assert [m.id for m in result.football] == ["fb-2"]
    assert adapter.refresh_flags == [False, True]


# ── Curated merge ───────────────────────────────────────────────────────

CURATED = [{
    "matchId": "custom-1",
    "matchName": "Curated Showcase",
    "teams": ["Side C", "Side D"],
    "status": "Day 2: Stumps",
    "details": {"innings": [{"team": "Side C", "inning": "Side C Inning 1", "score": "301/7"}]},
}]


@pytest.mark.asyncio
async def test_curated_match_ranks_first() -> None:
    adapter = FakeAdapter(Sport.CRICKET, [cricket("cr-2", "Live")])
    result = await make_service(adapter, curated=CURATED).fetch_all_sports_matches()

    assert [m.id for m in result.cricket] == ["custom-1", "cr-2"]
    assert result.cricket[0].is_custom
    assert result.cricket[0].sort_score > result.cricket[1].sort_score


@pytest.mark.asyncio
async def test_curated_merged_over_fallback_but_never_cached() -> None:
    adapter = FakeAdapter(Sport.CRICKET, [cricket("cr-1", "Side A won by 30 runs")])
    service = make_service(adapter, curated=CURATED)
    await service.fetch_all_sports_matches()

    adapter.success = False
    result = await service.fetch_all_sports_matches()
    assert [m.id for m in result.cricket] == ["custom-1", "cr-1"]
    assert [m.id for m in await service.cache.get(Sport.CRICKET) or []] == ["cr-1"]


@pytest.mark.asyncio
async def test_combined_list_is_ranked_across_sports() -> None:
    curated_basketball = [{
        "sport": "basketball",
        "matchId": "custom-bb-1",
        "matchName": "Lakers vs Celtics",
        "teams": ["Lakers", "Celtics"],
        "status": "Q3",
        "score": {"home": 70, "away": 66},
    }]
    adapter = FakeAdapter(Sport.CRICKET, [cricket("cr-1", "Side A batting")])
    service = make_service(adapter, curated=curated_basketball)
    result = await service.fetch_all_sports_matches()

    assert [m.id for m in result.all] == ["custom-bb-1", "cr-1"]
    assert result.all[0].sort_score > result.all[1].sort_score
    assert [m.id for m in service.organize(result).live] == ["custom-bb-1", "cr-1"]
    assert [m.id for m in service.search(result, "vs")] == ["custom-bb-1", "cr-1"]


# ── Filtering and caps ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unscored_non_live_matches_are_dropped() -> None:
    adapter = FakeAdapter(
        Sport.CRICKET,
        [
            cricket("cr-1", "Match not started", scored=False, date=NOW + timedelta(days=1)),
            cricket("cr-2", "Live", scored=False),
            cricket("cr-3", "Side A won by 30 runs"),
            cricket("cr-4", "Match finished", scored=False),
        ],
    )
    result = await make_service(adapter).fetch_all_sports_matches()
    assert {m.id for m in result.cricket} == {"cr-2", "cr-3"}


@pytest.mark.asyncio
async def test_football_list_is_capped() -> None:
    adapter = FakeAdapter(Sport.FOOTBALL, [football(f"fb-{i}") for i in range(6)])
    result = await make_service(adapter, football_match_limit=4).fetch_all_sports_matches()
    assert len(result.football) == 4


@pytest.mark.asyncio
async def test_duplicate_ids_collapse() -> None:
    adapter = FakeAdapter(Sport.FOOTBALL, [football("fb-1", status="First Half"), football("fb-1")])
    result = await make_service(adapter).fetch_all_sports_matches()
    assert [(m.id, m.status) for m in result.football] == [("fb-1", "Second Half")]


# ── Views ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_search_returns_live_scored_hits() -> None:
    adapter = FakeAdapter(Sport.FOOTBALL, [football("fb-1"), football("fb-2", status="Match Finished")])
    service = make_service(adapter)
    result = await service.fetch_all_sports_matches()

    assert [m.id for m in service.search(result, "home")] == ["fb-1"]
    assert service.search(result, "   ") == []


# ── Detail ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_curated_detail_is_served_from_seed() -> None:
    adapter = FakeAdapter(Sport.CRICKET, detail={"never": "used"})
    detail = await make_service(adapter, curated=CURATED).fetch_match_detail("custom-1")

    assert detail is not None
    assert detail.source == DetailSource.CURATED
    assert detail.data["data"][0]["inning"] == "Side C Inning 1"
    assert adapter.detail_calls == []


@pytest.mark.asyncio
async def test_unknown_id_has_no_detail() -> None:
    service = make_service(FakeAdapter(Sport.CRICKET))
    assert await service.fetch_match_detail("nope-1") is None


@pytest.mark.asyncio
async def test_provider_returning_nothing() -> None:
    adapter = FakeAdapter(Sport.CRICKET, detail=None)
    assert await make_service(adapter).fetch_match_detail("cr-abc") is None
    assert adapter.detail_calls == ["abc"]


@pytest.mark.asyncio
async def test_live_detail_is_not_cached() -> None:
    adapter = FakeAdapter(Sport.CRICKET, detail={"score": [1]})
    service = make_service(adapter)

    for _ in range(2):
        detail = await service.fetch_match_detail("cr-abc", known_status="Live")
        assert detail is not None
        assert detail.source == DetailSource.PROVIDER
    assert adapter.detail_calls == ["abc", "abc"]


@pytest.mark.asyncio
async def test_completed_detail_is_cached() -> None:
    adapter = FakeAdapter(Sport.CRICKET, detail={"score": [1]})
    service = make_service(adapter)

    first = await service.fetch_match_detail("cr-abc", known_status="Side A won by 5 wickets")
    second = await service.fetch_match_detail("cr-abc")

    assert first is not None and first.source == DetailSource.PROVIDER
    assert second is not None and second.source == DetailSource.CACHE
    assert second.data == {"score": [1]}
    assert adapter.detail_calls == ["abc"]


@pytest.mark.asyncio
async def test_quota_error_propagates() -> None:
    adapter = FakeAdapter(Sport.CRICKET, detail=QuotaExceededError(QUOTA_MESSAGE, "cricapi"))
    with pytest.raises(QuotaExceededError):
        await make_service(adapter).fetch_match_detail("cr-abc")


# ── Wiring ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_keyword_override_reaches_adapters_and_classifier(tmp_path: Path) -> None:
    raw = DEFAULT_TABLES.to_dict()
    raw["live"]["phrases"].append("shootout")
    tables_path = tmp_path / "keywords.json"
    tables_path.write_text(json.dumps(raw), encoding="utf-8")

    khl_game = {
        "id": 7,
        "date": "2025-03-10T00:00:00+00:00",
        "status": {"long": "Shootout", "short": "SO"},
        "league": {"name": "KHL"},
        "country": {"name": "Russia"},
        "teams": {"home": {"name": "SKA"}, "away": {"name": "CSKA"}},
        "scores": {"home": 2, "away": 2},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        records = [khl_game] if request.url.host == "v1.hockey.api-sports.io" else []
        return httpx.Response(200, json={"errors": [], "results": len(records), "response": records})

    settings = Settings(
        keyword_tables_path=tables_path,
        curated_matches_path=tmp_path / "absent.json",
        cricket_api_key="k",
        api_sports_key="k",
        provider_max_retries=1,
    )
    service = build_aggregation_service(settings, transport=httpx.MockTransport(handler))
    await service.start()
    try:
        result = await service.fetch_all_sports_matches()
    finally:
        await service.close()

    # a non-major league survives the hockey pre-filter only through the live table
    assert [m.id for m in result.hockey] == ["hk-7"]
    assert result.hockey[0].status == "Shootout"
    assert result.hockey[0].play_state == PlayState.LIVE
