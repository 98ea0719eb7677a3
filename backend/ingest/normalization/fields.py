"""Defensive field readers shared by the provider adapters."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

HOME_PLACEHOLDER = "Home"
AWAY_PLACEHOLDER = "Away"


def dig(data: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing or not a dict."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def safe_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse provider timestamps: ISO-8601 with or without offset/``Z``, a bare
    date, or epoch seconds. Naive values are taken as UTC. Unparseable input
    yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def team_names(home: Any, away: Any) -> list[str]:
    """Home/away display names with placeholders for missing values."""
    home_name = home if isinstance(home, str) and home.strip() else HOME_PLACEHOLDER
    away_name = away if isinstance(away, str) and away.strip() else AWAY_PLACEHOLDER
    return [home_name, away_name]


def venue_name(value: Any) -> str:
    """Venue display name from either ``{"name": ...}`` or a bare string."""
    if isinstance(value, dict):
        value = value.get("name")
    if isinstance(value, str) and value.strip():
        return value
    return "TBD"
