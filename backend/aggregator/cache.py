"""
Resilient match cache.

Three kinds of entries per store:

    snapshot:<sport>    full ranked list for the sport, valid for snapshot_ttl_s
    recent:<sport>      top N completed matches, no expiry; served when a live
                        fetch for the sport fails or comes back empty
    detail:<matchId>    scorecard/box-score; only completed matches (and
                        curated seeds) are stored, and they never expire

Entries are plain JSON. Anything unreadable is logged and treated as a miss.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from shared.models.domain import Match, MatchDetail
from shared.models.enums import PlayState, Sport
from shared.utils.cache_store import DETAIL_KEY, RECENT_KEY, SNAPSHOT_KEY, CacheStore
from shared.utils.logging import get_logger

logger = get_logger(__name__)

_MATCH_LIST = TypeAdapter(list[Match])

DEFAULT_SNAPSHOT_TTL_S = 120
DEFAULT_FALLBACK_SIZE = 5


def _dump_matches(matches: list[Match]) -> str:
    return _MATCH_LIST.dump_json(matches, by_alias=True).decode("utf-8")


class ResilientCache:
    """Cache service object injected into the aggregation service."""

    def __init__(
        self,
        store: CacheStore,
        snapshot_ttl_s: int = DEFAULT_SNAPSHOT_TTL_S,
        fallback_size: int = DEFAULT_FALLBACK_SIZE,
    ) -> None:
        self._store = store
        self._snapshot_ttl_s = snapshot_ttl_s
        self._fallback_size = fallback_size

    @property
    def store(self) -> CacheStore:
        return self._store

    async def _read_matches(self, key: str) -> Optional[list[Match]]:
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return _MATCH_LIST.validate_json(raw)
        except ValidationError as exc:
            logger.warning("cache_entry_malformed", key=key, errors=exc.error_count())
            return None

    # ── Sport snapshots ─────────────────────────────────────────────────

    async def get(self, sport: Sport) -> Optional[list[Match]]:
        """Last persisted fallback snapshot of completed matches, or None."""
        return await self._read_matches(RECENT_KEY.format(sport=sport.value))

    async def get_snapshot(self, sport: Sport) -> Optional[list[Match]]:
        """Short-term full snapshot while it is still inside its validity window."""
        return await self._read_matches(SNAPSHOT_KEY.format(sport=sport.value))

    async def put(self, sport: Sport, matches: list[Match]) -> None:
        """
        Persist the short-term snapshot and, when the list holds completed
        matches, replace the fallback snapshot with the top ``fallback_size``.
        ``matches`` must carry ``play_state`` and be in ranked order.
        """
        if not matches:
            return
        await self._store.set(
            SNAPSHOT_KEY.format(sport=sport.value),
            _dump_matches(matches),
            ttl_s=self._snapshot_ttl_s,
        )
        completed = [m for m in matches if m.play_state == PlayState.COMPLETED]
        if completed:
            await self._store.set(
                RECENT_KEY.format(sport=sport.value),
                _dump_matches(completed[: self._fallback_size]),
            )
        logger.debug(
            "cache_snapshot_written",
            sport=sport.value,
            matches=len(matches),
            completed=len(completed),
        )

    # ── Per-match detail ────────────────────────────────────────────────

    async def get_detail(self, match_id: str) -> Optional[MatchDetail]:
        key = DETAIL_KEY.format(match_id=match_id)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return MatchDetail.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("cache_entry_malformed", key=key, errors=exc.error_count())
            return None

    async def put_detail(self, detail: MatchDetail, state: PlayState) -> bool:
        """Store a detail only for completed matches. Returns whether it was stored."""
        if state != PlayState.COMPLETED:
            return False
        await self._store.set(
            DETAIL_KEY.format(match_id=detail.match_id),
            detail.model_dump_json(by_alias=True),
        )
        return True

    async def seed_detail(self, detail: MatchDetail) -> None:
        """Unconditional write used for curated matches."""
        await self._store.set(
            DETAIL_KEY.format(match_id=detail.match_id),
            detail.model_dump_json(by_alias=True),
        )


class YesterdayCache:
    """
    Process-wide holder for each sport's "yesterday" results, keyed by the
    calendar day they were fetched for. A new day invalidates the entry.
    """

    def __init__(self) -> None:
        self._entries: dict[Sport, tuple[date, list[Match]]] = {}

    def get(self, sport: Sport, day: date) -> Optional[list[Match]]:
        entry = self._entries.get(sport)
        if entry is None or entry[0] != day:
            return None
        return entry[1]

    def put(self, sport: Sport, day: date, matches: list[Match]) -> None:
        self._entries[sport] = (day, list(matches))

    def clear(self) -> None:
        self._entries.clear()
