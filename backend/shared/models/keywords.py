"""
Keyword tables used to read free-text provider status and competition names.

Each table is data, not control flow: a KeywordSet holds substring phrases
plus whole-word tokens. Tokens exist for short codes that would otherwise
hit inside unrelated words ("ft" in "left", "ended" in "suspended").
Tables can be overridden from a JSON file with the same shape as
``DEFAULT_TABLES.to_dict()``.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from shared.models.enums import Sport

_WORD_RE = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class KeywordSet:
    phrases: frozenset[str] = frozenset()
    tokens: frozenset[str] = frozenset()

    @classmethod
    def of(cls, phrases: Iterable[str] = (), tokens: Iterable[str] = ()) -> "KeywordSet":
        return cls(
            phrases=frozenset(p.lower() for p in phrases),
            tokens=frozenset(t.lower() for t in tokens),
        )

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        if any(phrase in lowered for phrase in self.phrases):
            return True
        if not self.tokens:
            return False
        return not self.tokens.isdisjoint(_WORD_RE.findall(lowered))

    def to_dict(self) -> dict[str, list[str]]:
        return {"phrases": sorted(self.phrases), "tokens": sorted(self.tokens)}


@dataclass(frozen=True)
class KeywordTables:
    completed: KeywordSet
    void: KeywordSet
    not_started: KeywordSet
    live: KeywordSet
    result: KeywordSet
    major: dict[Sport, KeywordSet] = field(default_factory=dict)

    def major_for(self, sport: Sport) -> KeywordSet:
        return self.major.get(sport, KeywordSet())

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed.to_dict(),
            "void": self.void.to_dict(),
            "not_started": self.not_started.to_dict(),
            "live": self.live.to_dict(),
            "result": self.result.to_dict(),
            "major": {sport.value: ks.to_dict() for sport, ks in self.major.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "KeywordTables":
        def _set(entry: dict[str, Any] | None) -> KeywordSet:
            entry = entry or {}
            return KeywordSet.of(entry.get("phrases", ()), entry.get("tokens", ()))

        return cls(
            completed=_set(raw.get("completed")),
            void=_set(raw.get("void")),
            not_started=_set(raw.get("not_started")),
            live=_set(raw.get("live")),
            result=_set(raw.get("result")),
            major={Sport(k): _set(v) for k, v in (raw.get("major") or {}).items()},
        )


DEFAULT_TABLES = KeywordTables(
    completed=KeywordSet.of(
        phrases=[
            "finished", "completed", "result", "won by", "lost by", "full time",
            "full-time", "abandoned", "after over time", "after extra time",
            "after penalties", "match drawn", "match tied", "closed",
        ],
        tokens=["ended", "final", "ft", "aet", "pen", "aot", "ap", "abd", "awd", "awarded", "drawn", "tied"],
    ),
    void=KeywordSet.of(
        phrases=["postponed", "cancelled", "canceled"],
        tokens=["pst", "canc"],
    ),
    not_started=KeywordSet.of(
        phrases=["not started", "scheduled", "to be defined", "starts at", "yet to begin"],
        tokens=["ns", "tbd"],
    ),
    live=KeywordSet.of(
        phrases=[
            "live", "in progress", "ongoing", "started", "playing",
            "innings", "inning", "period", "quarter", "half", "over time",
            "overtime", "extra time", "penalties time", "break",
            "batting", "bowling", "opt to", "elected to", "chose to", "chosen to",
            "toss", "need", "require", "lead by", "trail by", "stumps",
            "rain", "bad light", "delay", "wet outfield", "interrupted",
        ],
        tokens=[
            "q1", "q2", "q3", "q4", "ot", "1h", "2h", "ht", "et", "bt",
            "p1", "p2", "p3", "1st", "2nd", "3rd", "4th", "lunch", "tea", "drinks",
        ],
    ),
    result=KeywordSet.of(
        phrases=["finished", "completed", "result", "won by", "lost by", "full time"],
        tokens=["ended", "ft", "aet"],
    ),
    major={
        Sport.CRICKET: KeywordSet.of(
            phrases=[
                "indian premier league", "world cup", "champions trophy", "championship",
                "t20 international", "test match", "asia cup", "european cricket",
                "bilateral", "international", "tri-series", "women",
                "ranji", "vijay hazare", "syed mushtaq", "duleep", "deodhar",
                "irani", "india a", "india b", "maharaja", "trophy",
            ],
            tokens=["ipl", "icc", "t20i", "odi", "test", "cpl", "bbl", "psl", "tnpl"],
        ),
        Sport.FOOTBALL: KeywordSet.of(
            phrases=[
                "premier league", "la liga", "bundesliga", "serie a", "ligue 1",
                "champions league", "europa league", "fa cup", "world cup",
            ],
            tokens=["euro"],
        ),
        Sport.BASKETBALL: KeywordSet.of(
            phrases=["euroleague", "euro league", "college basketball"],
            tokens=["nba", "ncaa"],
        ),
        Sport.HOCKEY: KeywordSet.of(
            phrases=["pro league", "hockey india", "national hockey league"],
            tokens=["nhl", "fih"],
        ),
    },
)


def load_keyword_tables(path: Path | None) -> KeywordTables:
    """Load keyword tables from a JSON file, or the built-in defaults when no path is given."""
    if path is None:
        return DEFAULT_TABLES
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return KeywordTables.from_dict(raw)
