"""
League name normalization.

Providers label the same competition in many ways ("Premier League" exists
in England, Russia, Wales and elsewhere; FIH events arrive as "Pro League",
"FIH Hockey Pro League Women", ...). Each sport has an ordered rule table;
the first rule that matches supplies the display label.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.models.enums import Sport
from shared.models.keywords import KeywordSet


@dataclass(frozen=True)
class LeagueRule:
    """
    ``keywords`` must match the league text; every ``required`` phrase must be
    present, no ``excluded`` phrase may be, and when ``country`` is set the
    provider country must contain it.
    """

    label: str
    keywords: KeywordSet
    required: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()
    country: Optional[str] = None

    def matches(self, text: str, country: str = "") -> bool:
        lowered = text.lower()
        if not self.keywords.matches(lowered):
            return False
        if any(term not in lowered for term in self.required):
            return False
        if any(term in lowered for term in self.excluded):
            return False
        if self.country and self.country not in country.lower():
            return False
        return True


def _rule(label: str, phrases=(), tokens=(), **kwargs) -> LeagueRule:
    return LeagueRule(label=label, keywords=KeywordSet.of(phrases, tokens), **kwargs)


LEAGUE_RULES: dict[Sport, tuple[LeagueRule, ...]] = {
    Sport.CRICKET: (
        _rule("IPL", phrases=["indian premier league"], tokens=["ipl"]),
        _rule("ICC", phrases=["world cup"], tokens=["icc"]),
        _rule("International", phrases=["t20 international"], tokens=["t20i", "odi", "test"]),
        _rule("Ranji Trophy", phrases=["ranji"]),
        _rule("Vijay Hazare", phrases=["vijay hazare"]),
        _rule("Syed Mushtaq Ali", phrases=["syed mushtaq"]),
    ),
    Sport.FOOTBALL: (
        _rule("Premier League", phrases=["premier league"], country="england"),
        _rule("La Liga", phrases=["la liga"]),
        _rule("Bundesliga", phrases=["bundesliga"], excluded=("women", "frauen")),
        _rule("Serie A", phrases=["serie a"], country="italy"),
        _rule("Ligue 1", phrases=["ligue 1"]),
        _rule("Champions League", phrases=["uefa champions"]),
    ),
    Sport.BASKETBALL: (
        _rule("NBA", tokens=["nba"]),
        _rule("Euro League", phrases=["euroleague", "euro league"]),
        _rule("NCAA College Basketball", tokens=["ncaa"]),
    ),
    Sport.HOCKEY: (
        _rule("FIH Hockey Pro League", phrases=["pro league"], tokens=["fih"]),
        _rule("FIH Hockey Pro League", phrases=["hockey"], required=("pro",)),
        _rule("Hockey India League (Women)", phrases=["hockey india"], required=("women",)),
        _rule("Hockey India League (Women)", phrases=["india"], required=("women", "hockey")),
        _rule("NHL", phrases=["national hockey league"], tokens=["nhl"]),
    ),
}


def normalize_league(
    sport: Sport,
    text: str,
    country: str = "",
    rules: dict[Sport, tuple[LeagueRule, ...]] | None = None,
) -> Optional[str]:
    """Return the label of the first matching rule for ``sport``, or None."""
    if not text:
        return None
    for rule in (rules or LEAGUE_RULES).get(sport, ()):
        if rule.matches(text, country):
            return rule.label
    return None


def resolve_league(sport: Sport, raw_name: Optional[str], country: str = "") -> str:
    """Normalized label, else the raw provider name, else the sport default."""
    raw = (raw_name or "").strip()
    return normalize_league(sport, raw, country) or raw or sport.default_league
