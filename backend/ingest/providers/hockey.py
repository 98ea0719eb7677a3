"""api-sports.io hockey adapter (``/games``)."""
from __future__ import annotations

from typing import Any, Optional

from shared.models.domain import HockeyScore, Match
from shared.models.enums import Sport

from ingest.normalization.fields import dig, parse_timestamp, safe_int, team_names, venue_name
from ingest.normalization.leagues import resolve_league
from ingest.providers.api_sports import ApiSportsAdapter
from ingest.providers.base import FetchWindow

_PERIOD_KEYS = ("first", "second", "third", "overtime")


def _league_text(record: dict[str, Any]) -> str:
    return str(dig(record, "league", "name") or dig(record, "league", "type") or "")


def is_important_league(league_name: str) -> bool:
    lowered = league_name.lower()
    return (
        "fih" in lowered
        or "nhl" in lowered
        or ("hockey india" in lowered and "women" in lowered)
    )


def _period_goals(record: dict[str, Any], index: int) -> tuple[Optional[int], Optional[int]]:
    """Goals for one period from ``periods.first = "1-0"`` or ``scores.period_1.home``."""
    raw = dig(record, "periods", _PERIOD_KEYS[index])
    if isinstance(raw, str) and "-" in raw:
        home, _, away = raw.partition("-")
        return safe_int(home.strip()), safe_int(away.strip())
    nested = dig(record, "scores", f"period_{index + 1}")
    if isinstance(nested, dict):
        return safe_int(nested.get("home")), safe_int(nested.get("away"))
    return None, None


class HockeyAdapter(ApiSportsAdapter):
    sport = Sport.HOCKEY
    path = "/games"

    def keep(self, record: dict[str, Any], window: FetchWindow) -> bool:
        status = record.get("status")
        if self.is_not_started(status):
            return False
        important = is_important_league(_league_text(record))
        if window == FetchWindow.YESTERDAY:
            return important
        return important or self._tables.live.matches(self.status_text(status))

    def build_match(self, record: dict[str, Any], window: FetchWindow) -> Match:
        teams = team_names(dig(record, "teams", "home", "name"), dig(record, "teams", "away", "name"))
        scores = record.get("scores")
        score = None
        if isinstance(scores, dict):
            periods = [_period_goals(record, i) for i in range(len(_PERIOD_KEYS))]
            home_goals = scores.get("home")
            away_goals = scores.get("away")
            score = [
                HockeyScore(
                    team=teams[0],
                    goals=safe_int(home_goals.get("total") if isinstance(home_goals, dict) else home_goals),
                    period1=periods[0][0],
                    period2=periods[1][0],
                    period3=periods[2][0],
                    period4=periods[3][0],
                ),
                HockeyScore(
                    team=teams[1],
                    goals=safe_int(away_goals.get("total") if isinstance(away_goals, dict) else away_goals),
                    period1=periods[0][1],
                    period2=periods[1][1],
                    period3=periods[2][1],
                    period4=periods[3][1],
                ),
            ]
        default_status = "Live" if window == FetchWindow.TODAY else "Finished"
        return Match(
            id=f"{self.sport.id_prefix}{record['id']}",
            sport=self.sport,
            name=f"{teams[0]} vs {teams[1]}",
            teams=teams,
            league=resolve_league(
                self.sport, _league_text(record), dig(record, "country", "name") or ""
            ),
            venue=venue_name(record.get("venue")),
            date=parse_timestamp(record.get("date")),
            status=self.status_text(record.get("status")) or default_status,
            score=score,
        )
