"""
Polling scheduler.
Re-runs the aggregation fan-out on a fixed interval and on manual triggers,
and keeps the newest result on a board that readers poll.

Cycles may overlap (a manual refresh can start while a timed cycle is still
waiting on a slow provider). Every cycle gets a monotonically increasing id
when it starts; the board only accepts a result newer than the one it holds,
so a slow older cycle can never overwrite fresher data.
"""
from __future__ import annotations

import asyncio
import itertools
import signal
from typing import Optional

from shared.config import Settings, get_settings
from shared.models.domain import AggregateResult
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import LAST_APPLIED_CYCLE, STALE_CYCLES, start_metrics_server

from aggregator.service import AggregationService, build_aggregation_service

logger = get_logger(__name__)


class MatchBoard:
    """Latest applied aggregation result, guarded by cycle ids."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._applied_cycle = 0
        self._latest: Optional[AggregateResult] = None

    def begin_cycle(self) -> int:
        return next(self._ids)

    def apply(self, cycle_id: int, result: AggregateResult) -> bool:
        """Store ``result`` unless a newer cycle was already applied."""
        if cycle_id <= self._applied_cycle:
            STALE_CYCLES.inc()
            logger.info(
                "stale_cycle_discarded",
                cycle_id=cycle_id,
                applied_cycle=self._applied_cycle,
            )
            return False
        self._applied_cycle = cycle_id
        self._latest = result
        LAST_APPLIED_CYCLE.set(cycle_id)
        return True

    @property
    def applied_cycle(self) -> int:
        return self._applied_cycle

    @property
    def latest(self) -> Optional[AggregateResult]:
        return self._latest


class PollingService:
    """Drives aggregation cycles and publishes them to a MatchBoard."""

    def __init__(
        self,
        service: AggregationService,
        board: MatchBoard | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._service = service
        self._board = board or MatchBoard()
        self._settings = settings or get_settings()
        self._shutdown = asyncio.Event()

    @property
    def board(self) -> MatchBoard:
        return self._board

    async def run_cycle(self, is_refresh: bool = True, reuse_snapshot: bool = False) -> Optional[AggregateResult]:
        """Run one cycle and return whatever the board holds afterwards."""
        cycle_id = self._board.begin_cycle()
        result = await self._service.fetch_all_sports_matches(
            is_refresh=is_refresh, cycle_id=cycle_id, reuse_snapshot=reuse_snapshot
        )
        self._board.apply(cycle_id, result)
        return self._board.latest

    async def trigger(self) -> Optional[AggregateResult]:
        """Manual refresh, independent of the timed loop."""
        logger.info("manual_cycle_triggered")
        return await self.run_cycle(is_refresh=True)

    async def run(self) -> None:
        """
        Main polling loop.
        The first cycle is a full fetch; later ones are background refreshes
        that serve a sport from its snapshot while that is still valid.
        Manual triggers always go to the providers.
        """
        is_refresh = False
        while not self._shutdown.is_set():
            try:
                await self.run_cycle(is_refresh=is_refresh, reuse_snapshot=is_refresh)
                is_refresh = True
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("polling_loop_error", error=str(exc), exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._settings.poll_interval_s)
            except asyncio.TimeoutError:
                continue

    def request_shutdown(self) -> None:
        self._shutdown.set()


async def main() -> None:
    """Standalone poller entrypoint (no HTTP surface)."""
    settings = get_settings()
    setup_logging("scheduler")
    start_metrics_server()

    service = build_aggregation_service(settings)
    await service.start()
    poller = PollingService(service, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, poller.request_shutdown)

    logger.info("scheduler_service_started", poll_interval_s=settings.poll_interval_s)

    try:
        await poller.run()
    finally:
        await service.close()
        logger.info("scheduler_service_stopped")


if __name__ == "__main__":
    asyncio.run(main())
