"""
Unit tests for play-state classification: each rule on its own, the full
ordered pipeline, and recent-set membership.

Run: pytest backend/tests/test_classifier.py -v
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from shared.models.domain import CricketScore, FootballScore, Match
from shared.models.enums import PlayState, Sport
from shared.models.keywords import DEFAULT_TABLES, KeywordSet, KeywordTables

from aggregator.classifier import (
    Classifier,
    classify,
    explicit_flags,
    live_keyword,
    not_yet_started,
    sort_recent,
    terminal_keyword,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _match(status: str = "", **kwargs: Any) -> Match:
    fields: dict[str, Any] = {"id": "m1", "sport": Sport.CRICKET, "name": "A vs B", "status": status}
    fields.update(kwargs)
    return Match(**fields)


@pytest.fixture
def clf() -> Classifier:
    return Classifier()


# ── Keyword sets ────────────────────────────────────────────────────────

class TestKeywordSet:

    def test_phrase_is_substring(self) -> None:
        assert KeywordSet.of(phrases=["won by"]).matches("India WON BY 5 wickets")

    def test_token_needs_whole_word(self) -> None:
        ks = KeywordSet.of(tokens=["ft"])
        assert ks.matches("FT")
        assert not ks.matches("left handed")

    def test_ended_token_does_not_hit_suspended(self) -> None:
        assert not DEFAULT_TABLES.completed.matches("Match suspended")

    def test_tables_round_trip_through_dict(self) -> None:
        rebuilt = KeywordTables.from_dict(DEFAULT_TABLES.to_dict())
        assert rebuilt.live.matches("Bad light stopped play")
        assert rebuilt.major_for(Sport.BASKETBALL).matches("NBA")


# ── Individual rules ────────────────────────────────────────────────────

class TestTerminalKeyword:

    def test_completed_phrase(self, clf: Classifier) -> None:
        assert terminal_keyword(_match("Match Finished"), NOW, clf) == PlayState.COMPLETED

    def test_won_by(self, clf: Classifier) -> None:
        assert terminal_keyword(_match("Australia won by 7 wickets"), NOW, clf) == PlayState.COMPLETED

    def test_postponed_is_scheduled(self, clf: Classifier) -> None:
        assert terminal_keyword(_match("Postponed"), NOW, clf) == PlayState.SCHEDULED

    def test_cancelled_is_scheduled(self, clf: Classifier) -> None:
        assert terminal_keyword(_match("Match Cancelled"), NOW, clf) == PlayState.SCHEDULED

    def test_live_text_passes(self, clf: Classifier) -> None:
        assert terminal_keyword(_match("Q3 04:12"), NOW, clf) is None


class TestExplicitFlags:

    def test_started_not_ended_is_live(self, clf: Classifier) -> None:
        match = _match("Innings break", match_started=True, match_ended=False)
        assert explicit_flags(match, NOW, clf) == PlayState.LIVE

    def test_not_started_status_overrides_flags(self, clf: Classifier) -> None:
        match = _match("Match not started", match_started=True, match_ended=False)
        assert explicit_flags(match, NOW, clf) is None

    def test_ended_flag_is_completed(self, clf: Classifier) -> None:
        match = _match("", match_started=True, match_ended=True)
        assert explicit_flags(match, NOW, clf) == PlayState.COMPLETED

    def test_no_flags(self, clf: Classifier) -> None:
        assert explicit_flags(_match("Live"), NOW, clf) is None


class TestNotYetStarted:

    def test_future_beyond_grace(self, clf: Classifier) -> None:
        match = _match("", date=NOW + timedelta(minutes=6))
        assert not_yet_started(match, NOW, clf) == PlayState.SCHEDULED

    def test_inside_grace_passes(self, clf: Classifier) -> None:
        match = _match("", date=NOW + timedelta(minutes=4))
        assert not_yet_started(match, NOW, clf) is None

    def test_ns_code(self, clf: Classifier) -> None:
        assert not_yet_started(_match("NS"), NOW, clf) == PlayState.SCHEDULED

    def test_to_be_defined(self, clf: Classifier) -> None:
        assert not_yet_started(_match("Time To Be Defined"), NOW, clf) == PlayState.SCHEDULED


class TestLiveKeyword:

    @pytest.mark.parametrize(
        "status",
        ["Live", "Q4", "2H", "Stumps - Day 2", "Rain delay", "India need 45 runs", "3rd Period"],
    )
    def test_live_vocabulary(self, clf: Classifier, status: str) -> None:
        assert live_keyword(_match(status), NOW, clf) == PlayState.LIVE

    def test_unknown_text(self, clf: Classifier) -> None:
        assert live_keyword(_match("Awaiting update"), NOW, clf) is None


# ── Full pipeline ───────────────────────────────────────────────────────

class TestClassify:

    def test_bad_light_with_flags_is_live(self, clf: Classifier) -> None:
        match = _match("Bad light stopped play", match_started=True, match_ended=False)
        assert clf.classify(match, NOW) == PlayState.LIVE

    def test_football_match_finished_without_flags(self, clf: Classifier) -> None:
        match = _match("Match Finished", sport=Sport.FOOTBALL, id="fb-1")
        assert clf.classify(match, NOW) == PlayState.COMPLETED

    def test_terminal_keyword_beats_stale_flags(self, clf: Classifier) -> None:
        match = _match("India won by 5 wickets", match_started=True, match_ended=False)
        assert clf.classify(match, NOW) == PlayState.COMPLETED

    def test_postponed_with_live_words_is_never_live(self, clf: Classifier) -> None:
        match = _match("Postponed due to rain", match_started=True, match_ended=False)
        assert clf.classify(match, NOW) == PlayState.SCHEDULED

    def test_empty_status_no_date_is_indeterminate(self, clf: Classifier) -> None:
        assert clf.classify(_match(""), NOW) == PlayState.INDETERMINATE

    def test_deterministic(self, clf: Classifier) -> None:
        match = _match("Q2 05:00", sport=Sport.BASKETBALL)
        assert {clf.classify(match, NOW) for _ in range(5)} == {PlayState.LIVE}

    def test_module_level_helper_uses_defaults(self) -> None:
        assert classify(_match("Live"), NOW) == PlayState.LIVE

    def test_custom_tables(self) -> None:
        tables = KeywordTables.from_dict({"live": {"phrases": ["en juego"]}})
        assert Classifier(tables=tables).classify(_match("En juego"), NOW) == PlayState.LIVE


class TestClassifyStatus:

    def test_completed(self, clf: Classifier) -> None:
        assert clf.classify_status("Final") == PlayState.COMPLETED

    def test_live(self, clf: Classifier) -> None:
        assert clf.classify_status("Halftime") == PlayState.LIVE

    def test_not_started(self, clf: Classifier) -> None:
        assert clf.classify_status("Not Started") == PlayState.SCHEDULED

    def test_empty(self, clf: Classifier) -> None:
        assert clf.classify_status("") == PlayState.INDETERMINATE


# ── Recent set ──────────────────────────────────────────────────────────

_SCORE = [CricketScore(team="A", r=150), CricketScore(team="B", r=120)]


class TestRecentCandidate:

    def test_completed_inside_window(self, clf: Classifier) -> None:
        match = _match("Finished", date=NOW - timedelta(days=2))
        assert clf.is_recent_candidate(match, PlayState.COMPLETED, NOW)

    def test_completed_outside_window_needs_score(self, clf: Classifier) -> None:
        old = NOW - timedelta(days=45)
        assert not clf.is_recent_candidate(_match("Finished", date=old), PlayState.COMPLETED, NOW)
        assert clf.is_recent_candidate(_match("Finished", date=old, score=_SCORE), PlayState.COMPLETED, NOW)

    def test_undated_completed_needs_score(self, clf: Classifier) -> None:
        assert not clf.is_recent_candidate(_match("Finished"), PlayState.COMPLETED, NOW)
        assert clf.is_recent_candidate(_match("Finished", score=_SCORE), PlayState.COMPLETED, NOW)

    def test_indeterminate_with_score_in_window(self, clf: Classifier) -> None:
        match = _match("Awaiting update", score=_SCORE, date=NOW - timedelta(hours=3))
        assert clf.is_recent_candidate(match, PlayState.INDETERMINATE, NOW)

    def test_indeterminate_without_score(self, clf: Classifier) -> None:
        assert not clf.is_recent_candidate(_match(""), PlayState.INDETERMINATE, NOW)

    def test_live_never_recent(self, clf: Classifier) -> None:
        assert not clf.is_recent_candidate(_match("Live", score=_SCORE), PlayState.LIVE, NOW)


def test_sort_recent_orders_by_date_then_score_then_id() -> None:
    day = NOW - timedelta(days=1)
    scored = [FootballScore(team="A", goals=1), FootballScore(team="B", goals=0)]
    matches = [
        _match("FT", id="c", sport=Sport.FOOTBALL, date=day),
        _match("FT", id="b", sport=Sport.FOOTBALL, date=day, score=scored),
        _match("FT", id="a", sport=Sport.FOOTBALL, date=NOW),
        _match("FT", id="z", sport=Sport.FOOTBALL),
    ]
    assert [m.id for m in sort_recent(matches)] == ["a", "b", "c", "z"]
