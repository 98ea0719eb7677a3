"""Free-text search over the live part of a ranked match list."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from shared.models.domain import Match
from shared.models.enums import PlayState

from aggregator.classifier import Classifier

SEARCH_RESULT_LIMIT = 6


def _haystack(match: Match) -> tuple[str, ...]:
    return (
        match.name.lower(),
        " ".join(match.teams or ()).lower(),
        match.status.lower(),
        match.venue.lower(),
        match.league.lower(),
    )


def search_matches(
    matches: Iterable[Match],
    query: str,
    classifier: Classifier,
    limit: int = SEARCH_RESULT_LIMIT,
    now: datetime | None = None,
) -> list[Match]:
    """
    Case-insensitive substring search over name, teams, status, venue and
    league. Only live matches with a score are returned, in input order.
    """
    needle = query.strip().lower()
    if not needle:
        return []
    now = now or datetime.now(timezone.utc)
    results: list[Match] = []
    for match in matches:
        if not any(needle in field for field in _haystack(match)):
            continue
        state = match.play_state or classifier.classify(match, now)
        if state != PlayState.LIVE or not match.has_score:
            continue
        results.append(match)
        if len(results) >= limit:
            break
    return results
