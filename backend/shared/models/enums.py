"""Domain enumerations for the multi-sport aggregator."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    CRICKET = "cricket"
    BASKETBALL = "basketball"
    FOOTBALL = "football"
    HOCKEY = "hockey"

    @property
    def id_prefix(self) -> str:
        """Prefix applied to provider ids so they never collide across sports."""
        return _ID_PREFIXES[self]

    @property
    def default_league(self) -> str:
        return _DEFAULT_LEAGUES[self]


_ID_PREFIXES: dict[Sport, str] = {
    Sport.CRICKET: "cr-",
    Sport.BASKETBALL: "bb-",
    Sport.FOOTBALL: "fb-",
    Sport.HOCKEY: "hk-",
}

_DEFAULT_LEAGUES: dict[Sport, str] = {
    Sport.CRICKET: "Cricket",
    Sport.BASKETBALL: "Basketball",
    Sport.FOOTBALL: "Football",
    Sport.HOCKEY: "NHL",
}


class PlayState(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    INDETERMINATE = "indeterminate"

    @property
    def is_live(self) -> bool:
        return self == PlayState.LIVE


class DetailSource(str, Enum):
    PROVIDER = "provider"
    CURATED = "curated"
    CACHE = "cache"
