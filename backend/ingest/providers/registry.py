"""
Adapter registry.
Builds one adapter per sport from settings and resolves canonical match ids
back to the adapter and provider id that produced them.
"""
from __future__ import annotations

from typing import Iterator, Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.enums import Sport
from shared.models.keywords import DEFAULT_TABLES, KeywordTables
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from aggregator.cache import YesterdayCache
from ingest.providers.api_sports import api_sports_headers
from ingest.providers.base import BaseAdapter
from ingest.providers.basketball import BasketballAdapter
from ingest.providers.cricket import CricketAdapter
from ingest.providers.football import FootballAdapter
from ingest.providers.hockey import HockeyAdapter

logger = get_logger(__name__)


class AdapterRegistry:
    """Sport -> adapter mapping with shared lifecycle."""

    def __init__(self, adapters: dict[Sport, BaseAdapter]) -> None:
        self._adapters = adapters

    def __iter__(self) -> Iterator[BaseAdapter]:
        return iter(self._adapters.values())

    def __contains__(self, sport: Sport) -> bool:
        return sport in self._adapters

    def get(self, sport: Sport) -> Optional[BaseAdapter]:
        return self._adapters.get(sport)

    @property
    def sports(self) -> list[Sport]:
        return list(self._adapters)

    def resolve(self, match_id: str) -> Optional[tuple[BaseAdapter, str]]:
        """Map ``"bb-500"`` to (basketball adapter, ``"500"``); None for curated or unknown ids."""
        for sport, adapter in self._adapters.items():
            prefix = sport.id_prefix
            if match_id.startswith(prefix) and len(match_id) > len(prefix):
                return adapter, match_id[len(prefix):]
        return None

    async def start(self) -> None:
        for adapter in self._adapters.values():
            await adapter.start()
        logger.info("adapters_started", sports=[s.value for s in self._adapters])

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()


def build_registry(
    yesterday_cache: YesterdayCache,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    tables: KeywordTables = DEFAULT_TABLES,
) -> AdapterRegistry:
    """
    Construct the four adapters from settings.

    ``transport`` is handed to every HTTP client; tests pass an
    ``httpx.MockTransport`` here.
    """
    settings = settings or get_settings()

    def _client(name: str, base_url: str, headers: dict[str, str] | None = None) -> ProviderHTTPClient:
        return ProviderHTTPClient(
            provider_name=name,
            base_url=base_url,
            headers=headers,
            timeout_s=settings.provider_request_timeout_s,
            max_retries=settings.provider_max_retries,
            transport=transport,
        )

    api_sports = api_sports_headers(settings.api_sports_key)
    adapters: dict[Sport, BaseAdapter] = {
        Sport.CRICKET: CricketAdapter(
            _client("cricapi", settings.cricket_base_url),
            api_key=settings.cricket_api_key,
            page_offsets=settings.cricket_page_offsets,
        ),
        Sport.BASKETBALL: BasketballAdapter(
            _client("api_sports_basketball", settings.basketball_base_url, api_sports),
            yesterday_cache,
            tables=tables,
            today_limit=settings.today_match_limit,
            yesterday_limit=settings.yesterday_match_limit,
            league_id=settings.basketball_league_id,
        ),
        Sport.FOOTBALL: FootballAdapter(
            _client("api_sports_football", settings.football_base_url, api_sports),
            yesterday_cache,
            tables=tables,
        ),
        Sport.HOCKEY: HockeyAdapter(
            _client("api_sports_hockey", settings.hockey_base_url, api_sports),
            yesterday_cache,
            tables=tables,
            today_limit=settings.today_match_limit,
            yesterday_limit=settings.yesterday_match_limit,
        ),
    }
    if not settings.cricket_api_key:
        logger.warning("provider_key_missing", provider="cricapi")
    if not settings.api_sports_key:
        logger.warning("provider_key_missing", provider="api_sports")
    return AdapterRegistry(adapters)
