"""
Dependency injection for the API service.
Provides the aggregation service and the polling loop to route handlers.
"""
from __future__ import annotations

from aggregator.service import AggregationService
from scheduler.service import PollingService

# Module-level singletons, initialized at startup
_service: AggregationService | None = None
_poller: PollingService | None = None


def init_dependencies(service: AggregationService, poller: PollingService) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _service, _poller
    _service = service
    _poller = poller


def get_service() -> AggregationService:
    """FastAPI dependency: returns the shared AggregationService."""
    if _service is None:
        raise RuntimeError("AggregationService not initialized, call init_dependencies first")
    return _service


def get_poller() -> PollingService:
    """FastAPI dependency: returns the shared PollingService."""
    if _poller is None:
        raise RuntimeError("PollingService not initialized, call init_dependencies first")
    return _poller
