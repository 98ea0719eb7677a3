"""api-sports.io football adapter (``/fixtures``)."""
from __future__ import annotations

from typing import Any

from shared.models.domain import FootballScore, Match
from shared.models.enums import Sport

from ingest.normalization.fields import dig, parse_timestamp, safe_int, team_names, venue_name
from ingest.normalization.leagues import resolve_league
from ingest.providers.api_sports import ApiSportsAdapter
from ingest.providers.base import FetchWindow

_FINISHED_MARKERS = ("finished", "full time")


class FootballAdapter(ApiSportsAdapter):
    sport = Sport.FOOTBALL
    path = "/fixtures"

    def _fixture_status(self, record: dict[str, Any]) -> str:
        status = dig(record, "fixture", "status")
        text = self.status_text(status)
        if text:
            return text
        elapsed = dig(status, "elapsed")
        return f"{elapsed}'" if elapsed else "Scheduled"

    def keep(self, record: dict[str, Any], window: FetchWindow) -> bool:
        status = self.status_text(dig(record, "fixture", "status")).lower()
        if window == FetchWindow.YESTERDAY:
            return any(marker in status for marker in _FINISHED_MARKERS)
        # Scheduled fixtures stay; only void ones are dropped.
        return not self._tables.void.matches(status)

    def build_match(self, record: dict[str, Any], window: FetchWindow) -> Match:
        fixture = record["fixture"]
        teams = team_names(dig(record, "teams", "home", "name"), dig(record, "teams", "away", "name"))
        goals = record.get("goals")
        score = None
        if isinstance(goals, dict):
            score = [
                FootballScore(
                    team=teams[0],
                    goals=safe_int(goals.get("home")),
                    halftime=safe_int(dig(record, "score", "halftime", "home")),
                ),
                FootballScore(
                    team=teams[1],
                    goals=safe_int(goals.get("away")),
                    halftime=safe_int(dig(record, "score", "halftime", "away")),
                ),
            ]
        return Match(
            id=f"{self.sport.id_prefix}{fixture['id']}",
            sport=self.sport,
            name=f"{teams[0]} vs {teams[1]}",
            teams=teams,
            league=resolve_league(
                self.sport, dig(record, "league", "name"), dig(record, "league", "country") or ""
            ),
            venue=venue_name(fixture.get("venue")),
            date=parse_timestamp(fixture.get("date")),
            status=self._fixture_status(record),
            score=score,
        )
