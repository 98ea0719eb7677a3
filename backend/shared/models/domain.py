"""
Pydantic v2 domain models shared by the ingest, aggregator and api packages.
These are the canonical wire/internal representations. Field names are
snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from shared.models.enums import DetailSource, PlayState, Sport

# Cricket providers report runs/wickets/overs as numbers or as display strings
# such as "540/8 dec".
ScoreValue = Union[int, float, str, None]


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _present(value: Any) -> bool:
    return value is not None and value != ""


# ── Score variants ──────────────────────────────────────────────────────
class CricketScore(DomainModel):
    kind: Literal["cricket"] = "cricket"
    team: Optional[str] = None
    r: ScoreValue = None
    w: ScoreValue = None
    o: ScoreValue = None
    inning: Optional[str] = None

    @property
    def has_value(self) -> bool:
        return _present(self.r)


class BasketballScore(DomainModel):
    kind: Literal["basketball"] = "basketball"
    team: Optional[str] = None
    points: Optional[int] = None
    q1: Optional[int] = None
    q2: Optional[int] = None
    q3: Optional[int] = None
    q4: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return _present(self.points)


class FootballScore(DomainModel):
    kind: Literal["football"] = "football"
    team: Optional[str] = None
    goals: Optional[int] = None
    halftime: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return _present(self.goals)


class HockeyScore(DomainModel):
    kind: Literal["hockey"] = "hockey"
    team: Optional[str] = None
    goals: Optional[int] = None
    period1: Optional[int] = None
    period2: Optional[int] = None
    period3: Optional[int] = None
    period4: Optional[int] = None

    @property
    def has_value(self) -> bool:
        return _present(self.goals)


TeamScore = Annotated[
    Union[CricketScore, BasketballScore, FootballScore, HockeyScore],
    Field(discriminator="kind"),
]


# ── Match ───────────────────────────────────────────────────────────────
class Match(DomainModel):
    """
    Canonical, sport-agnostic match record.

    Built fresh every fetch cycle and frozen once built; the classifier and
    scorer attach ``play_state``/``sort_score`` through ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    sport: Sport
    name: str = ""
    teams: Optional[list[str]] = None
    league: str = ""
    series: Optional[str] = None
    series_id: Optional[str] = None
    venue: str = "TBD"
    date: Optional[datetime] = None
    status: str = ""
    match_started: Optional[bool] = None
    match_ended: Optional[bool] = None
    score: Optional[list[TeamScore]] = None
    is_custom: bool = False
    play_state: Optional[PlayState] = None
    sort_score: int = Field(default=0, exclude=True)

    @field_validator("teams")
    @classmethod
    def teams_are_a_pair(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None or len(value) != 2:
            return None
        return value

    @field_validator("score")
    @classmethod
    def score_at_most_two(cls, value: Optional[list[Any]]) -> Optional[list[Any]]:
        if not value:
            return None
        return value[:2]

    @field_validator("date")
    @classmethod
    def date_is_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_score(self) -> bool:
        """True when at least one side carries a usable score (0 counts)."""
        return bool(self.score) and any(s.has_value for s in self.score)


# ── Detail ──────────────────────────────────────────────────────────────
class MatchDetail(DomainModel):
    """Full scorecard / box-score for one match, as returned by the provider."""

    match_id: str
    sport: Optional[Sport] = None
    data: Any = None
    source: DetailSource = DetailSource.PROVIDER
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ── Aggregate result ────────────────────────────────────────────────────
class AggregateResult(DomainModel):
    """Output of one fan-out cycle, per sport plus the combined list."""

    cricket: list[Match] = Field(default_factory=list)
    basketball: list[Match] = Field(default_factory=list)
    football: list[Match] = Field(default_factory=list)
    hockey: list[Match] = Field(default_factory=list)
    all: list[Match] = Field(default_factory=list)
    cycle_id: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    fallbacks: list[Sport] = Field(default_factory=list)

    @classmethod
    def from_sports(
        cls,
        per_sport: dict[Sport, list[Match]],
        cycle_id: int = 0,
        fallbacks: Optional[list[Sport]] = None,
        key: Optional[Callable[[Match], Any]] = None,
    ) -> "AggregateResult":
        """
        Assemble a cycle result. ``key`` orders the combined list across
        sports; without it the combined list keeps sport order.
        """
        ordered = {sport: per_sport.get(sport, []) for sport in Sport}
        combined = [m for sport in Sport for m in ordered[sport]]
        if key is not None:
            combined.sort(key=key)
        return cls(
            **{sport.value: matches for sport, matches in ordered.items()},
            all=combined,
            cycle_id=cycle_id,
            fallbacks=fallbacks or [],
        )

    def for_sport(self, sport: Sport) -> list[Match]:
        return getattr(self, sport.value)


# ── Organized views ─────────────────────────────────────────────────────
class LeagueBucket(DomainModel):
    sport: Optional[Sport] = None
    live: list[Match] = Field(default_factory=list)
    recent: list[Match] = Field(default_factory=list)
    display_limit: int = Field(default=5, exclude=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_recent(self) -> list[Match]:
        return self.recent[: self.display_limit]


class SportBucket(DomainModel):
    live: list[Match] = Field(default_factory=list)
    recent: list[Match] = Field(default_factory=list)
    all: list[Match] = Field(default_factory=list)


class OrganizedMatches(DomainModel):
    per_sport: dict[Sport, SportBucket] = Field(default_factory=dict)
    per_league: dict[str, LeagueBucket] = Field(default_factory=dict)
    live: list[Match] = Field(default_factory=list)
    recent: list[Match] = Field(default_factory=list)
