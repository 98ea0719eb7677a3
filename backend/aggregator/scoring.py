"""
Priority scoring and total ordering of matches.

Additive score:
    curated match                      +2000
    live                               +1000
    major competition in name/league   +500
    structured series (seriesId set)   +100
    completed with a result keyword    +50

Order: score desc, start time desc (undated last), id asc.
"""
from __future__ import annotations

import math
from typing import Iterable, Mapping

from shared.models.domain import Match
from shared.models.enums import PlayState

from aggregator.classifier import Classifier

DEFAULT_CLASSIFIER = Classifier()

CUSTOM_WEIGHT = 2000
LIVE_WEIGHT = 1000
MAJOR_WEIGHT = 500
SERIES_WEIGHT = 100
RESULT_WEIGHT = 50


def score_match(match: Match, state: PlayState, classifier: Classifier | None = None) -> int:
    classifier = classifier or DEFAULT_CLASSIFIER
    score = 0
    if match.is_custom:
        score += CUSTOM_WEIGHT
    if state == PlayState.LIVE:
        score += LIVE_WEIGHT
    text = " ".join(filter(None, (match.name, match.league, match.series)))
    if classifier.tables.major_for(match.sport).matches(text):
        score += MAJOR_WEIGHT
    if match.series_id:
        score += SERIES_WEIGHT
    if state == PlayState.COMPLETED and classifier.has_result(match):
        score += RESULT_WEIGHT
    return score


def order_key(match: Match) -> tuple[int, float, str]:
    ts = -match.date.timestamp() if match.date is not None else math.inf
    return (-match.sort_score, ts, match.id)


def rank(
    matches: Iterable[Match],
    states: Mapping[str, PlayState],
    classifier: Classifier | None = None,
) -> list[Match]:
    """Attach play state and sort score to each match and return them in priority order."""
    scored = []
    for match in matches:
        state = states.get(match.id, PlayState.INDETERMINATE)
        scored.append(
            match.model_copy(
                update={"play_state": state, "sort_score": score_match(match, state, classifier)}
            )
        )
    return sorted(scored, key=order_key)
