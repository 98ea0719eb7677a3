"""
Sport and league views over a ranked match stream.

League membership is deliberately loose because providers label the same
competition inconsistently. A match belongs to catalog league L when any of
these hold (all lowercase):

- L is contained in the match league
- L with whitespace removed is contained in the match league
- L is contained in the match name
- L is contained in the match series
- any word of L with 3+ characters is contained in the match league or name

Only matches of the catalog league's own sport are tested.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from shared.models.domain import LeagueBucket, Match, OrganizedMatches, SportBucket
from shared.models.enums import PlayState, Sport

from aggregator.classifier import Classifier, sort_recent

_WS_RE = re.compile(r"\s+")

LEAGUE_RECENT_LIMIT = 10
DISPLAY_RECENT_LIMIT = 5
OVERALL_RECENT_LIMIT = 6


def matches_league(league_name: str, match: Match) -> bool:
    target = league_name.lower()
    compact = _WS_RE.sub("", target)
    league = match.league.lower()
    name = match.name.lower()
    series = (match.series or "").lower()

    if target in league or compact in league or target in name or target in series:
        return True
    keywords = [word for word in target.split() if len(word) >= 3]
    return any(word in league or word in name for word in keywords)


def _catalog_sport(catalog: Mapping[str, Sequence[str]], league_name: str) -> Optional[Sport]:
    for sport_name, leagues in catalog.items():
        if league_name in leagues:
            return Sport(sport_name)
    return None


class Organizer:
    """Buckets ranked matches into live / recent views per sport and per league."""

    def __init__(
        self,
        classifier: Classifier,
        league_catalog: Mapping[str, Sequence[str]],
        league_recent_limit: int = LEAGUE_RECENT_LIMIT,
        display_recent_limit: int = DISPLAY_RECENT_LIMIT,
        overall_recent_limit: int = OVERALL_RECENT_LIMIT,
    ) -> None:
        self._classifier = classifier
        self._catalog = league_catalog
        self._league_recent_limit = league_recent_limit
        self._display_limit = display_recent_limit
        self._overall_limit = overall_recent_limit

    def _state(self, match: Match, now: datetime) -> PlayState:
        return match.play_state or self._classifier.classify(match, now)

    def organize(
        self,
        sorted_matches: Sequence[Match],
        now: datetime | None = None,
        sport: Sport | None = None,
        league: str | None = None,
    ) -> OrganizedMatches:
        """
        ``sorted_matches`` must already be ranked; live buckets keep that order
        while recent buckets are re-sorted by date.
        """
        now = now or datetime.now(timezone.utc)
        pool = [m for m in sorted_matches if sport is None or m.sport == sport]

        live: list[Match] = []
        recent_candidates: list[Match] = []
        for match in pool:
            state = self._state(match, now)
            if state == PlayState.LIVE:
                live.append(match)
            elif self._classifier.is_recent_candidate(match, state, now):
                recent_candidates.append(match)
        recent = sort_recent(recent_candidates)

        per_sport: dict[Sport, SportBucket] = {}
        for s in Sport:
            if sport is not None and s != sport:
                continue
            per_sport[s] = SportBucket(
                live=[m for m in live if m.sport == s],
                recent=[m for m in recent if m.sport == s][: self._display_limit],
                all=[m for m in pool if m.sport == s],
            )

        per_league: dict[str, LeagueBucket] = {}
        for league_name, league_sport in self._leagues_to_process(sport, league):
            league_live = [
                m for m in live
                if (league_sport is None or m.sport == league_sport) and matches_league(league_name, m)
            ]
            league_recent = [
                m for m in recent
                if (league_sport is None or m.sport == league_sport) and matches_league(league_name, m)
            ][: self._league_recent_limit]
            if not league_live and not league_recent:
                continue
            per_league[league_name] = LeagueBucket(
                sport=league_sport,
                live=league_live,
                recent=league_recent,
                display_limit=self._display_limit,
            )

        return OrganizedMatches(
            per_sport=per_sport,
            per_league=per_league,
            live=live,
            recent=recent[: self._overall_limit],
        )

    def _leagues_to_process(
        self, sport: Sport | None, league: str | None
    ) -> list[tuple[str, Optional[Sport]]]:
        if league:
            return [(league, _catalog_sport(self._catalog, league) or sport)]
        pairs: list[tuple[str, Optional[Sport]]] = []
        for sport_name, leagues in self._catalog.items():
            catalog_sport = Sport(sport_name)
            if sport is not None and catalog_sport != sport:
                continue
            pairs.extend((name, catalog_sport) for name in leagues)
        return pairs
