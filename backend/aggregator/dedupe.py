"""Identifier-based de-duplication of match streams."""
from __future__ import annotations

from typing import Iterable

from shared.models.domain import Match


def dedupe(matches: Iterable[Match]) -> list[Match]:
    """
    Keep one match per id. The last occurrence wins but sits at the position
    of the first, so overlapping pages do not reshuffle the stream.
    """
    by_id: dict[str, Match] = {}
    for match in matches:
        by_id[match.id] = match
    return list(by_id.values())
