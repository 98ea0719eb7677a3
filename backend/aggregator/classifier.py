"""
Play-state classification.

Providers describe match state in free text ("Q3", "Stumps", "Match Finished",
"Bad light stopped play"), and only cricket sends explicit started/ended
flags. Classification runs an ordered list of small named rules; the first
rule that returns a state wins:

1. terminal_keyword    completed keywords -> COMPLETED, postponed/cancelled -> SCHEDULED
2. explicit_flags      started and not ended -> LIVE (ignored when status says not started)
3. not_yet_started     start more than the grace period ahead, or a not-started status -> SCHEDULED
4. live_keyword        live vocabulary in status -> LIVE
   otherwise           INDETERMINATE

Terminal keywords are checked before flags so that a stale ``matchEnded=False``
can never keep a finished match live.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from shared.models.domain import Match
from shared.models.enums import PlayState
from shared.models.keywords import DEFAULT_TABLES, KeywordTables

DEFAULT_GRACE = timedelta(minutes=5)
DEFAULT_RECENT_WINDOW = timedelta(days=30)

RuleFn = Callable[[Match, datetime, "Classifier"], Optional[PlayState]]


# ── Rules ───────────────────────────────────────────────────────────────

def terminal_keyword(match: Match, now: datetime, clf: "Classifier") -> Optional[PlayState]:
    if clf.tables.completed.matches(match.status):
        return PlayState.COMPLETED
    if clf.tables.void.matches(match.status):
        return PlayState.SCHEDULED
    return None


def explicit_flags(match: Match, now: datetime, clf: "Classifier") -> Optional[PlayState]:
    if match.match_started is True and match.match_ended is False:
        if clf.tables.not_started.matches(match.status):
            return None
        return PlayState.LIVE
    if match.match_ended is True:
        return PlayState.COMPLETED
    return None


def not_yet_started(match: Match, now: datetime, clf: "Classifier") -> Optional[PlayState]:
    if match.date is not None and match.date > now + clf.grace:
        return PlayState.SCHEDULED
    if clf.tables.not_started.matches(match.status):
        return PlayState.SCHEDULED
    return None


def live_keyword(match: Match, now: datetime, clf: "Classifier") -> Optional[PlayState]:
    if clf.tables.live.matches(match.status):
        return PlayState.LIVE
    return None


RULES: tuple[tuple[str, RuleFn], ...] = (
    ("terminal_keyword", terminal_keyword),
    ("explicit_flags", explicit_flags),
    ("not_yet_started", not_yet_started),
    ("live_keyword", live_keyword),
)


class Classifier:
    """Holds keyword tables and time windows; stateless between calls."""

    def __init__(
        self,
        tables: KeywordTables = DEFAULT_TABLES,
        grace: timedelta = DEFAULT_GRACE,
        recent_window: timedelta = DEFAULT_RECENT_WINDOW,
        rules: tuple[tuple[str, RuleFn], ...] = RULES,
    ) -> None:
        self.tables = tables
        self.grace = grace
        self.recent_window = recent_window
        self._rules = rules

    def classify(self, match: Match, now: datetime | None = None) -> PlayState:
        now = now or datetime.now(timezone.utc)
        for _name, rule in self._rules:
            state = rule(match, now, self)
            if state is not None:
                return state
        return PlayState.INDETERMINATE

    def classify_status(self, status: str) -> PlayState:
        """Status-text-only reading, for callers that hold no full Match."""
        if self.tables.completed.matches(status):
            return PlayState.COMPLETED
        if self.tables.void.matches(status) or self.tables.not_started.matches(status):
            return PlayState.SCHEDULED
        if self.tables.live.matches(status):
            return PlayState.LIVE
        return PlayState.INDETERMINATE

    def has_result(self, match: Match) -> bool:
        return self.tables.result.matches(match.status)

    def is_recent_candidate(self, match: Match, state: PlayState, now: datetime | None = None) -> bool:
        """
        Membership test for the recently-completed set.

        COMPLETED qualifies inside the trailing window or with a final score
        (undated ones need the score). INDETERMINATE needs a final score and
        either no date or a date inside the window.
        """
        if state not in (PlayState.COMPLETED, PlayState.INDETERMINATE):
            return False
        now = now or datetime.now(timezone.utc)
        in_window = match.date is not None and now - self.recent_window <= match.date <= now
        if state == PlayState.COMPLETED:
            if match.date is None:
                return match.has_score
            return in_window or match.has_score
        return match.has_score and (match.date is None or in_window)


def sort_recent(matches: Iterable[Match]) -> list[Match]:
    """Most recent first; among equal dates scored matches first; then id."""

    def _key(match: Match) -> tuple[float, int, str]:
        ts = -match.date.timestamp() if match.date is not None else math.inf
        return (ts, 0 if match.has_score else 1, match.id)

    return sorted(matches, key=_key)


_default = Classifier()


def classify(match: Match, now: datetime | None = None, classifier: Classifier | None = None) -> PlayState:
    """Classify with the default tables unless a configured classifier is given."""
    return (classifier or _default).classify(match, now)
