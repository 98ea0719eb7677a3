"""
Manual match injector.

Operators curate matches in a JSON file (a list of entries, or an object of
lists keyed by sport). Curated matches bypass the provider adapters, carry
``isCustom=True`` and always rank first. When an entry ships detail data
(cricket innings with batting/bowling cards) the injector seeds the detail
cache so the detail lookup never goes to the network for it.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.models.domain import (
    BasketballScore,
    CricketScore,
    FootballScore,
    HockeyScore,
    Match,
    MatchDetail,
)
from shared.models.enums import DetailSource, Sport
from shared.utils.logging import get_logger

from aggregator.cache import ResilientCache
from ingest.normalization.fields import dig, parse_timestamp, safe_int

logger = get_logger(__name__)

_FINISHED_ALIASES = {"completed", "finished"}


class CuratedEntry(BaseModel):
    """One operator-supplied match as written in the curated file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    match_id: str = Field(alias="matchId")
    match_name: str = Field(default="", alias="matchName")
    sport: Sport = Sport.CRICKET
    teams: Optional[list[str]] = None
    status: str = ""
    venue: str = "TBD"
    date: Optional[str] = None
    league: Optional[str] = None
    score: Any = None
    details: Optional[dict[str, Any]] = None

    @field_validator("sport", mode="before")
    @classmethod
    def sport_case_insensitive(cls, value: Any) -> Any:
        if value is None or value == "":
            return Sport.CRICKET
        return value.lower() if isinstance(value, str) else value

    @property
    def innings(self) -> list[dict[str, Any]]:
        raw = (self.details or {}).get("innings") or []
        return [inn for inn in raw if isinstance(inn, dict)]


def load_curated_entries(path: Union[str, Path, None]) -> list[dict[str, Any]]:
    """Read the curated file. A missing or unreadable file yields no entries."""
    if path is None:
        return []
    file_path = Path(path)
    if not file_path.exists():
        logger.info("curated_file_missing", path=str(file_path))
        return []
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("curated_file_unreadable", path=str(file_path), error=str(exc))
        return []

    if isinstance(raw, dict):
        entries: list[dict[str, Any]] = []
        for sport_key, items in raw.items():
            for item in items or []:
                if isinstance(item, dict):
                    entries.append({"sport": sport_key, **item})
        return entries
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)]
    logger.warning("curated_file_unexpected_shape", path=str(file_path))
    return []


# ── Score mapping ───────────────────────────────────────────────────────

def _wickets_from(runs_text: str, fallback: Any) -> Any:
    if "/" in runs_text:
        return runs_text.split("/", 1)[1].split(" ", 1)[0]
    return fallback if fallback is not None else 10


def cricket_score_from_innings(teams: list[str], innings: list[dict[str, Any]]) -> list[CricketScore]:
    """Latest inning per team by name; a team with no inning gets a zero score."""
    scores: list[CricketScore] = []
    for team in teams:
        label = team.lower()
        latest = None
        for inn in innings:
            inn_team = str(inn.get("team") or "").lower()
            if inn_team and (inn_team == label or inn_team in label):
                latest = inn
        if latest is None:
            scores.append(CricketScore(team=team, r=0, w=0, o=0))
            continue
        runs = latest.get("score")
        if runs is None or runs == "":
            runs = latest.get("r", 0)
        scores.append(
            CricketScore(
                team=team,
                r=runs,
                w=_wickets_from(str(runs), latest.get("w")),
                o=latest.get("o"),
                inning=latest.get("inning"),
            )
        )
    return scores


def _pair(value: Any, index: int) -> tuple[Optional[int], Optional[int]]:
    """``{"h": 1, "a": 2}`` or ``[{"h": ..}, ..][index]`` -> (home, away)."""
    if isinstance(value, list):
        value = value[index] if index < len(value) else None
    if not isinstance(value, dict):
        return None, None
    return safe_int(value.get("h")), safe_int(value.get("a"))


def _quarter(score: dict[str, Any], index: int) -> tuple[Optional[int], Optional[int]]:
    if "quarters" in score:
        return _pair(score.get("quarters"), index)
    return _pair(score.get(f"q{index + 1}"), 0)


def _team_scores(entry: CuratedEntry) -> Optional[list[Any]]:
    teams = entry.teams if entry.teams and len(entry.teams) == 2 else None
    score = entry.score

    if entry.sport == Sport.CRICKET:
        if teams and entry.innings:
            return cricket_score_from_innings(teams, entry.innings)
        if isinstance(score, list):
            return [
                CricketScore(
                    team=s.get("team") or (teams[i] if teams else None),
                    r=s.get("r"),
                    w=s.get("w"),
                    o=s.get("o"),
                    inning=s.get("inning"),
                )
                for i, s in enumerate(score[:2])
                if isinstance(s, dict)
            ] or None
        return None

    if not isinstance(score, dict) or teams is None:
        return None
    home, away = safe_int(score.get("home")) or 0, safe_int(score.get("away")) or 0

    if entry.sport == Sport.BASKETBALL:
        quarters = [_quarter(score, i) for i in range(4)]
        return [
            BasketballScore(team=teams[side], points=(home, away)[side],
                            q1=quarters[0][side], q2=quarters[1][side],
                            q3=quarters[2][side], q4=quarters[3][side])
            for side in (0, 1)
        ]
    if entry.sport == Sport.FOOTBALL:
        halftime = _pair(score.get("halftime"), 0)
        return [
            FootballScore(team=teams[side], goals=(home, away)[side], halftime=halftime[side])
            for side in (0, 1)
        ]
    periods = [_pair(score.get("periods"), i) for i in range(4)]
    return [
        HockeyScore(team=teams[side], goals=(home, away)[side],
                    period1=periods[0][side], period2=periods[1][side],
                    period3=periods[2][side], period4=periods[3][side])
        for side in (0, 1)
    ]


def _scorecard(entry: CuratedEntry) -> Any:
    if entry.sport == Sport.CRICKET and entry.innings:
        return {
            "status": "success",
            "data": [
                {
                    "team": inn.get("team"),
                    "inning": inn.get("inning") or f"Inning {idx + 1}",
                    "batting": inn.get("batting") or [],
                    "bowling": inn.get("bowling") or [],
                }
                for idx, inn in enumerate(entry.innings)
            ],
        }
    return entry.details


class ManualMatchInjector:
    """Turns curated entries into canonical matches and seeds their detail slots."""

    def __init__(self, cache: ResilientCache) -> None:
        self._cache = cache

    def build_match(self, entry: CuratedEntry) -> Match:
        status = entry.status
        if entry.sport != Sport.CRICKET and status.lower() in _FINISHED_ALIASES:
            status = "Finished"
        teams = entry.teams
        name = entry.match_name
        if not name and teams and len(teams) == 2:
            name = f"{teams[0]} vs {teams[1]}"
        return Match(
            id=entry.match_id,
            sport=entry.sport,
            name=name,
            teams=teams,
            league=entry.league or entry.sport.default_league,
            venue=entry.venue or "TBD",
            date=parse_timestamp(entry.date),
            status=status,
            score=_team_scores(entry),
            is_custom=True,
        )

    async def inject(self, entries: list[dict[str, Any]]) -> list[Match]:
        matches: list[Match] = []
        for raw in entries:
            try:
                entry = CuratedEntry.model_validate(raw)
                match = self.build_match(entry)
            except (ValidationError, TypeError, ValueError, AttributeError) as exc:
                logger.warning(
                    "curated_entry_skipped",
                    match_id=dig(raw, "matchId"),
                    error=str(exc),
                )
                continue
            if entry.details:
                await self._cache.seed_detail(
                    MatchDetail(
                        match_id=entry.match_id,
                        sport=entry.sport,
                        data=_scorecard(entry),
                        source=DetailSource.CURATED,
                    )
                )
            matches.append(match)
        if matches:
            logger.info("curated_matches_injected", count=len(matches))
        return matches
