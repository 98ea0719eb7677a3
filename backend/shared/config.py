"""
Central configuration for the multi-sport aggregator services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class CacheBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


def _default_league_catalog() -> dict[str, list[str]]:
    return {
        "football": [
            "Premier League",
            "La Liga",
            "AFC Women's Super League",
            "Frauen-Bundesliga",
        ],
        "basketball": ["NBA", "Euro League", "NCAA College Basketball"],
        "hockey": ["FIH Hockey Pro League", "Hockey India League (Women)"],
        "cricket": ["IPL", "ICC"],
    }


class Settings(BaseSettings):
    """Root settings shared across the api and scheduler services."""

    model_config = SettingsConfigDict(
        env_prefix="MSA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound into every log line")

    # ── Providers ────────────────────────────────────────────
    cricket_api_key: str = ""
    cricket_base_url: str = "https://api.cricapi.com/v1"
    cricket_page_offsets: list[int] = Field(default=[0, 25, 50, 75, 100])
    api_sports_key: str = ""
    basketball_base_url: str = "https://v1.basketball.api-sports.io"
    basketball_league_id: int = 12
    football_base_url: str = "https://v3.football.api-sports.io"
    hockey_base_url: str = "https://v1.hockey.api-sports.io"
    provider_request_timeout_s: float = 10.0
    provider_max_retries: int = 2

    # ── Adapter limits ───────────────────────────────────────
    today_match_limit: int = 30
    yesterday_match_limit: int = 10
    cricket_match_limit: int = 100
    football_match_limit: int = 50

    # ── Aggregation ──────────────────────────────────────────
    poll_interval_s: float = 300.0
    scheduled_grace_minutes: int = 5
    recent_window_days: int = 30
    league_recent_limit: int = 10
    display_recent_limit: int = 5
    overall_recent_limit: int = 6
    search_result_limit: int = 6
    league_catalog: dict[str, list[str]] = Field(default_factory=_default_league_catalog)
    curated_matches_path: Path = _BACKEND_DIR / "data" / "curated_matches.json"
    keyword_tables_path: Optional[Path] = Field(
        default=None,
        description="JSON override for the status/competition keyword tables.",
    )

    # ── Cache ────────────────────────────────────────────────
    cache_backend: CacheBackend = CacheBackend.MEMORY
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = "msa:"
    snapshot_ttl_s: int = 120
    fallback_snapshot_size: int = 5

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("cricket_page_offsets")
    @classmethod
    def offsets_not_empty(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("cricket_page_offsets must contain at least one offset")
        return value

    @property
    def redis_url_str(self) -> str:
        return str(self.redis_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
