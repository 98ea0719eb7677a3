"""Unit tests for the league/sport organizer and live search."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from shared.config import _default_league_catalog
from shared.models.domain import FootballScore, HockeyScore, Match
from shared.models.enums import PlayState, Sport

from aggregator.classifier import Classifier
from aggregator.organizer import Organizer, matches_league
from aggregator.scoring import rank
from aggregator.search import search_matches

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _football(match_id: str, status: str, league: str, **kwargs: Any) -> Match:
    fields: dict[str, Any] = {
        "id": match_id,
        "sport": Sport.FOOTBALL,
        "name": f"Home {match_id} vs Away {match_id}",
        "teams": [f"Home {match_id}", f"Away {match_id}"],
        "league": league,
        "status": status,
        "date": NOW - timedelta(hours=1),
        "score": [FootballScore(team="H", goals=1), FootballScore(team="A", goals=0)],
    }
    fields.update(kwargs)
    return Match(**fields)


@pytest.fixture
def classifier() -> Classifier:
    return Classifier()


@pytest.fixture
def organizer(classifier: Classifier) -> Organizer:
    return Organizer(classifier, _default_league_catalog())


def _ranked(classifier: Classifier, matches: list[Match]) -> list[Match]:
    return rank(matches, {m.id: classifier.classify(m, NOW) for m in matches}, classifier)


# ── League predicate ────────────────────────────────────────────────────

class TestMatchesLeague:

    def test_league_substring(self) -> None:
        assert matches_league("Premier League", _football("fb-1", "FT", "Premier League"))

    def test_whitespace_removed_variant(self) -> None:
        match = _football("fb-1", "FT", "laliga ea sports")
        assert matches_league("La Liga", match)

    def test_token_in_name(self) -> None:
        match = _football("fb-1", "FT", "Other", name="Premier showdown")
        assert matches_league("Premier League", match)

    def test_hyphenated_league_is_one_token(self) -> None:
        match = _football("fb-1", "FT", "Other", name="Frauen Cup Final")
        assert matches_league("Frauen-Bundesliga", match) is False
        match = _football("fb-2", "FT", "Other", name="Bundesliga derby")
        assert matches_league("Frauen-Bundesliga", match) is False

    def test_series_match(self) -> None:
        match = Match(id="cr-1", sport=Sport.CRICKET, name="A vs B", league="Cricket", series="IPL 2025")
        assert matches_league("IPL", match)

    def test_short_tokens_ignored(self) -> None:
        match = _football("fb-1", "FT", "A League", name="X vs Y")
        assert not matches_league("La Liga", match)


# ── Organize ────────────────────────────────────────────────────────────

class TestOrganize:

    def test_live_and_recent_are_disjoint(self, organizer: Organizer, classifier: Classifier) -> None:
        matches = _ranked(classifier, [
            _football("fb-1", "Second Half", "Premier League"),
            _football("fb-2", "Match Finished", "Premier League"),
            _football("fb-3", "Match Finished", "La Liga"),
        ])
        organized = organizer.organize(matches, now=NOW)

        pl = organized.per_league["Premier League"]
        assert [m.id for m in pl.live] == ["fb-1"]
        assert [m.id for m in pl.recent] == ["fb-2"]
        assert {m.id for m in organized.live}.isdisjoint(m.id for m in organized.recent)
        assert [m.id for m in organized.per_league["La Liga"].recent] == ["fb-3"]

    def test_empty_leagues_omitted(self, organizer: Organizer, classifier: Classifier) -> None:
        organized = organizer.organize(
            _ranked(classifier, [_football("fb-1", "Second Half", "Premier League")]), now=NOW
        )
        assert "La Liga" not in organized.per_league
        assert "NBA" not in organized.per_league

    def test_league_only_sees_its_own_sport(self, organizer: Organizer, classifier: Classifier) -> None:
        hockey = Match(
            id="hk-1",
            sport=Sport.HOCKEY,
            name="Premier League Select vs Stars",
            teams=["Premier League Select", "Stars"],
            league="Exhibition",
            status="P2",
            score=[HockeyScore(team="A", goals=1), HockeyScore(team="B", goals=1)],
        )
        organized = organizer.organize(_ranked(classifier, [hockey]), now=NOW)
        assert "Premier League" not in organized.per_league
        assert [m.id for m in organized.per_sport[Sport.HOCKEY].live] == ["hk-1"]

    def test_caps(self, classifier: Classifier) -> None:
        organizer = Organizer(
            classifier,
            {"football": ["Premier League"]},
            league_recent_limit=3,
            display_recent_limit=2,
            overall_recent_limit=4,
        )
        finished = [
            _football(f"fb-{i}", "Match Finished", "Premier League", date=NOW - timedelta(hours=i + 1))
            for i in range(8)
        ]
        organized = organizer.organize(_ranked(classifier, finished), now=NOW)

        bucket = organized.per_league["Premier League"]
        assert len(bucket.recent) == 3
        assert [m.id for m in bucket.display_recent] == ["fb-0", "fb-1"]
        assert len(organized.per_sport[Sport.FOOTBALL].recent) == 2
        assert len(organized.per_sport[Sport.FOOTBALL].all) == 8
        assert len(organized.recent) == 4

    def test_filters_by_sport_and_league(self, organizer: Organizer, classifier: Classifier) -> None:
        matches = _ranked(classifier, [
            _football("fb-1", "Second Half", "Premier League"),
            Match(id="bb-1", sport=Sport.BASKETBALL, name="Lakers vs Celtics", league="NBA", status="Q2"),
        ])
        organized = organizer.organize(matches, now=NOW, sport=Sport.FOOTBALL, league="Premier League")
        assert list(organized.per_sport) == [Sport.FOOTBALL]
        assert list(organized.per_league) == ["Premier League"]
        assert [m.id for m in organized.live] == ["fb-1"]

    def test_scheduled_in_neither_bucket(self, organizer: Organizer, classifier: Classifier) -> None:
        scheduled = _football("fb-9", "Not Started", "Premier League", date=NOW + timedelta(days=1), score=None)
        organized = organizer.organize(_ranked(classifier, [scheduled]), now=NOW)
        assert organized.live == []
        assert organized.recent == []
        assert organized.per_sport[Sport.FOOTBALL].all[0].play_state == PlayState.SCHEDULED


# ── Search ──────────────────────────────────────────────────────────────

class TestSearch:

    def test_only_live_scored_matches(self, classifier: Classifier) -> None:
        matches = _ranked(classifier, [
            _football("fb-1", "Second Half", "Premier League"),
            _football("fb-2", "Match Finished", "Premier League"),
            _football("fb-3", "First Half", "Premier League", score=None),
        ])
        found = search_matches(matches, "premier", classifier, now=NOW)
        assert [m.id for m in found] == ["fb-1"]

    def test_searches_teams_and_venue(self, classifier: Classifier) -> None:
        matches = _ranked(classifier, [
            _football("fb-1", "Second Half", "Premier League", venue="Anfield"),
        ])
        assert search_matches(matches, "ANFIELD", classifier, now=NOW)
        assert search_matches(matches, "away fb-1", classifier, now=NOW)

    def test_blank_query(self, classifier: Classifier) -> None:
        matches = _ranked(classifier, [_football("fb-1", "Second Half", "Premier League")])
        assert search_matches(matches, "   ", classifier, now=NOW) == []

    def test_limit(self, classifier: Classifier) -> None:
        matches = _ranked(
            classifier, [_football(f"fb-{i}", "Second Half", "Premier League") for i in range(10)]
        )
        assert len(search_matches(matches, "premier", classifier, limit=6, now=NOW)) == 6
