"""
Fan-out aggregation service.

One cycle runs the four sport pipelines concurrently:

    (valid snapshot when reused | adapter fetch -> fallback snapshot on failure/empty)
        -> curated merge
        -> dedupe -> classify -> displayable filter -> rank -> cap -> cache

A failing sport never affects another one; its slot is served from the
fallback snapshot or left empty. Curated matches are merged in every time,
including over a fallback snapshot.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.domain import AggregateResult, Match, MatchDetail, OrganizedMatches
from shared.models.enums import DetailSource, PlayState, Sport
from shared.models.keywords import load_keyword_tables
from shared.utils.cache_store import build_cache_store
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    CACHE_FALLBACKS,
    CYCLE_DURATION,
    DETAIL_LOOKUPS,
    LIVE_MATCHES,
    atrack_latency,
)

from aggregator.cache import ResilientCache, YesterdayCache
from aggregator.classifier import Classifier
from aggregator.dedupe import dedupe
from aggregator.organizer import Organizer
from aggregator.scoring import order_key, rank
from aggregator.search import search_matches
from ingest.injector import ManualMatchInjector, load_curated_entries
from ingest.providers.registry import AdapterRegistry, build_registry

logger = get_logger(__name__)

# Where a sport's matches came from in one cycle.
_PROVIDER = "provider"
_SNAPSHOT = "snapshot"
_FALLBACK = "fallback"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AggregationService:
    """Orchestrates adapters, cache, classifier and ranking for all sports."""

    def __init__(
        self,
        registry: AdapterRegistry,
        cache: ResilientCache,
        classifier: Classifier | None = None,
        organizer: Organizer | None = None,
        curated_entries: list[dict[str, Any]] | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry
        self._cache = cache
        self._classifier = classifier or Classifier()
        self._organizer = organizer or Organizer(
            self._classifier,
            self._settings.league_catalog,
            league_recent_limit=self._settings.league_recent_limit,
            display_recent_limit=self._settings.display_recent_limit,
            overall_recent_limit=self._settings.overall_recent_limit,
        )
        self._injector = ManualMatchInjector(cache)
        self._curated_entries = curated_entries or []
        self._curated: Optional[list[Match]] = None
        self._clock = clock
        self._caps: dict[Sport, int] = {
            Sport.CRICKET: self._settings.cricket_match_limit,
            Sport.FOOTBALL: self._settings.football_match_limit,
        }

    @property
    def classifier(self) -> Classifier:
        return self._classifier

    @property
    def cache(self) -> ResilientCache:
        return self._cache

    async def start(self) -> None:
        await self._cache.store.connect()
        await self._registry.start()

    async def close(self) -> None:
        await self._registry.close()
        await self._cache.store.disconnect()

    # ── Curated matches ─────────────────────────────────────────────────

    async def curated_matches(self) -> list[Match]:
        """Curated matches, built (and their details seeded) on first use."""
        if self._curated is None:
            self._curated = await self._injector.inject(self._curated_entries)
        return self._curated

    # ── Fan-out ─────────────────────────────────────────────────────────

    async def fetch_all_sports_matches(
        self,
        is_refresh: bool = False,
        cycle_id: int = 0,
        reuse_snapshot: bool = False,
    ) -> AggregateResult:
        """
        Run one aggregation cycle across every sport.

        ``is_refresh`` marks a background re-poll: api-sports adapters then
        reuse the cached "yesterday" window instead of refetching it.
        With ``reuse_snapshot`` a sport whose short-term snapshot is still
        valid is served from it and its adapter is not called.
        """
        async with atrack_latency(CYCLE_DURATION):
            now = self._clock()
            curated = await self.curated_matches()
            sports = list(Sport)
            outcomes = await asyncio.gather(
                *(self._sport_pipeline(sport, is_refresh, reuse_snapshot, now, curated) for sport in sports),
                return_exceptions=True,
            )

            per_sport: dict[Sport, list[Match]] = {}
            fallbacks: list[Sport] = []
            for sport, outcome in zip(sports, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(
                        "sport_pipeline_failed",
                        sport=sport.value,
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                    per_sport[sport] = []
                    continue
                matches, source = outcome
                per_sport[sport] = matches
                if source == _FALLBACK:
                    fallbacks.append(sport)

        result = AggregateResult.from_sports(
            per_sport, cycle_id=cycle_id, fallbacks=fallbacks, key=order_key
        )
        logger.info(
            "aggregation_cycle_complete",
            cycle_id=cycle_id,
            is_refresh=is_refresh,
            reuse_snapshot=reuse_snapshot,
            total=len(result.all),
            fallbacks=[s.value for s in fallbacks],
        )
        return result

    async def _provider_matches(
        self,
        sport: Sport,
        is_refresh: bool,
        reuse_snapshot: bool,
    ) -> tuple[list[Match], str]:
        """
        Matches for one sport and where they came from: the still valid
        short-term snapshot (only with ``reuse_snapshot``), live adapter
        output, or the fallback snapshot when the live output is unusable.
        """
        if reuse_snapshot:
            snapshot = await self._cache.get_snapshot(sport)
            if snapshot:
                logger.debug("snapshot_reused", sport=sport.value, matches=len(snapshot))
                return snapshot, _SNAPSHOT

        adapter = self._registry.get(sport)
        if adapter is not None:
            result = await adapter.fetch(is_refresh)
            if result.success and result.matches:
                return result.matches, _PROVIDER
            reason = "fetch_failed" if not result.success else "empty"
        else:
            reason = "no_adapter"

        cached = await self._cache.get(sport)
        if cached:
            CACHE_FALLBACKS.labels(sport=sport.value, outcome="served").inc()
            logger.warning(
                "cache_fallback_served",
                sport=sport.value,
                reason=reason,
                matches=len(cached),
            )
            return cached, _FALLBACK
        CACHE_FALLBACKS.labels(sport=sport.value, outcome="miss").inc()
        logger.warning("cache_fallback_miss", sport=sport.value, reason=reason)
        return [], _PROVIDER

    def _displayable(self, match: Match, state: PlayState) -> bool:
        return match.is_custom or match.has_score or state == PlayState.LIVE

    async def _sport_pipeline(
        self,
        sport: Sport,
        is_refresh: bool,
        reuse_snapshot: bool,
        now: datetime,
        curated: list[Match],
    ) -> tuple[list[Match], str]:
        provider_matches, source = await self._provider_matches(sport, is_refresh, reuse_snapshot)
        merged = dedupe([*provider_matches, *(m for m in curated if m.sport == sport)])

        states = {m.id: self._classifier.classify(m, now) for m in merged}
        # The fallback snapshot is served as stored.
        if source != _FALLBACK:
            merged = [m for m in merged if self._displayable(m, states[m.id])]

        ranked = rank(merged, states, self._classifier)
        cap = self._caps.get(sport)
        if cap is not None:
            ranked = ranked[:cap]

        # A reused snapshot keeps its original expiry.
        if source == _PROVIDER:
            await self._cache.put(sport, [m for m in ranked if not m.is_custom])
        LIVE_MATCHES.labels(sport=sport.value).set(
            sum(1 for m in ranked if m.play_state == PlayState.LIVE)
        )
        return ranked, source

    # ── Views ───────────────────────────────────────────────────────────

    def organize(
        self,
        result: AggregateResult,
        sport: Sport | None = None,
        league: str | None = None,
    ) -> OrganizedMatches:
        return self._organizer.organize(result.all, now=self._clock(), sport=sport, league=league)

    def search(self, result: AggregateResult, query: str) -> list[Match]:
        return search_matches(
            result.all,
            query,
            self._classifier,
            limit=self._settings.search_result_limit,
            now=self._clock(),
        )

    # ── Detail ──────────────────────────────────────────────────────────

    async def fetch_match_detail(self, match_id: str, known_status: str | None = None) -> Optional[MatchDetail]:
        """
        Cache first, then the owning provider. Provider errors propagate
        (QuotaExceededError included); an unknown id yields None. The fresh
        detail is cached only when ``known_status`` reads as completed.
        """
        await self.curated_matches()
        cached = await self._cache.get_detail(match_id)
        if cached is not None:
            sport_label = cached.sport.value if cached.sport else "unknown"
            DETAIL_LOOKUPS.labels(sport=sport_label, source="cache").inc()
            if cached.source == DetailSource.PROVIDER:
                return cached.model_copy(update={"source": DetailSource.CACHE})
            return cached

        resolved = self._registry.resolve(match_id)
        if resolved is None:
            logger.info("detail_unresolvable", match_id=match_id)
            return None
        adapter, provider_id = resolved

        data = await adapter.fetch_detail(provider_id)
        if data is None:
            DETAIL_LOOKUPS.labels(sport=adapter.sport.value, source="not_found").inc()
            return None
        DETAIL_LOOKUPS.labels(sport=adapter.sport.value, source="provider").inc()

        detail = MatchDetail(match_id=match_id, sport=adapter.sport, data=data)
        state = self._classifier.classify_status(known_status or "")
        stored = await self._cache.put_detail(detail, state)
        logger.debug("detail_fetched", match_id=match_id, state=state.value, cached=stored)
        return detail


def build_aggregation_service(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AggregationService:
    """Wire store, caches, adapters and classifier from settings."""
    settings = settings or get_settings()
    cache = ResilientCache(
        build_cache_store(settings),
        snapshot_ttl_s=settings.snapshot_ttl_s,
        fallback_size=settings.fallback_snapshot_size,
    )
    tables = load_keyword_tables(settings.keyword_tables_path)
    registry = build_registry(YesterdayCache(), settings=settings, transport=transport, tables=tables)
    classifier = Classifier(
        tables=tables,
        grace=timedelta(minutes=settings.scheduled_grace_minutes),
        recent_window=timedelta(days=settings.recent_window_days),
    )
    return AggregationService(
        registry,
        cache,
        classifier=classifier,
        curated_entries=load_curated_entries(settings.curated_matches_path),
        settings=settings,
    )
