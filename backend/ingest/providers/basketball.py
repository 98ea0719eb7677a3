"""api-sports.io basketball adapter (``/games``, NBA league by default)."""
from __future__ import annotations

from datetime import date
from typing import Any

from shared.models.domain import BasketballScore, Match
from shared.models.enums import Sport

from ingest.normalization.fields import dig, parse_timestamp, safe_int, team_names, venue_name
from ingest.normalization.leagues import resolve_league
from ingest.providers.api_sports import ApiSportsAdapter
from ingest.providers.base import FetchWindow

NBA_LEAGUE_ID = 12


def _side(team: str, scores: dict[str, Any]) -> BasketballScore:
    return BasketballScore(
        team=team,
        points=safe_int(scores.get("total")),
        q1=safe_int(scores.get("quarter_1")),
        q2=safe_int(scores.get("quarter_2")),
        q3=safe_int(scores.get("quarter_3")),
        q4=safe_int(scores.get("quarter_4")),
    )


class BasketballAdapter(ApiSportsAdapter):
    sport = Sport.BASKETBALL
    path = "/games"

    def __init__(self, *args: Any, league_id: int | None = NBA_LEAGUE_ID, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._league_id = league_id

    def day_params(self, day: date) -> dict[str, Any]:
        params = super().day_params(day)
        if self._league_id is not None:
            params["league"] = self._league_id
        return params

    def keep(self, record: dict[str, Any], window: FetchWindow) -> bool:
        return not self.is_not_started(record.get("status"))

    def build_match(self, record: dict[str, Any], window: FetchWindow) -> Match:
        teams = team_names(dig(record, "teams", "home", "name"), dig(record, "teams", "away", "name"))
        scores = record.get("scores")
        score = None
        if isinstance(scores, dict):
            score = [
                _side(teams[0], scores.get("home") or {}),
                _side(teams[1], scores.get("away") or {}),
            ]
        default_status = "Live" if window == FetchWindow.TODAY else "Finished"
        return Match(
            id=f"{self.sport.id_prefix}{record['id']}",
            sport=self.sport,
            name=f"{teams[0]} vs {teams[1]}",
            teams=teams,
            league=resolve_league(
                self.sport, dig(record, "league", "name"), dig(record, "country", "name") or ""
            ),
            venue=venue_name(record.get("venue")),
            date=parse_timestamp(record.get("date")),
            status=self.status_text(record.get("status")) or default_status,
            score=score,
        )
