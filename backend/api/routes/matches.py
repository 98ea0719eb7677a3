"""
Match REST endpoints.

GET  /v1/matches                      Latest aggregated result (all sports).
GET  /v1/matches/organized            Live / recent views per sport and league.
GET  /v1/matches/search?q=            Live matches matching a free-text query.
GET  /v1/matches/{match_id}/detail    Scorecard / box-score for one match.
POST /v1/matches/refresh              Run a cycle now and return it.
"""
from __future__ import annotations

import hashlib
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from shared.models.domain import AggregateResult
from shared.models.enums import Sport
from shared.utils.logging import get_logger

from aggregator.service import AggregationService
from api.dependencies import get_poller, get_service
from scheduler.service import PollingService

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])


async def _latest(poller: PollingService) -> AggregateResult:
    """The board's latest result, running a first cycle when nothing is applied yet."""
    result = poller.board.latest
    if result is None:
        result = await poller.run_cycle(is_refresh=False)
    if result is None:
        # A newer concurrent cycle won the board but has not landed; serve empty.
        return AggregateResult()
    return result


@router.get("")
async def list_matches(
    request: Request,
    response: Response,
    poller: PollingService = Depends(get_poller),
) -> Any:
    """All sports, ranked. Supports ETag-based conditional requests."""
    result = await _latest(poller)
    payload_json = result.model_dump_json(by_alias=True)
    etag = _compute_etag(payload_json)
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304)
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "public, max-age=5"
    return result.model_dump(mode="json", by_alias=True)


@router.get("/organized")
async def organized_matches(
    sport: Optional[Sport] = Query(None),
    league: Optional[str] = Query(None, max_length=100),
    poller: PollingService = Depends(get_poller),
    service: AggregationService = Depends(get_service),
) -> dict[str, Any]:
    result = await _latest(poller)
    organized = service.organize(result, sport=sport, league=league)
    return organized.model_dump(mode="json", by_alias=True)


@router.get("/search")
async def search_matches(
    q: str = Query(..., min_length=1, max_length=100),
    poller: PollingService = Depends(get_poller),
    service: AggregationService = Depends(get_service),
) -> dict[str, Any]:
    result = await _latest(poller)
    found = service.search(result, q)
    return {
        "query": q,
        "results": [m.model_dump(mode="json", by_alias=True) for m in found],
    }


@router.get("/{match_id}/detail")
async def match_detail(
    match_id: str,
    status: Optional[str] = Query(None, description="Status text the caller last saw for this match"),
    service: AggregationService = Depends(get_service),
) -> dict[str, Any]:
    """
    Detail for one match. ``detail`` is null when the provider does not know
    the id; quota exhaustion maps to 429 and other provider failures to 502.
    """
    detail = await service.fetch_match_detail(match_id, status)
    return {
        "matchId": match_id,
        "detail": detail.model_dump(mode="json", by_alias=True) if detail else None,
    }


@router.post("/refresh")
async def refresh_matches(poller: PollingService = Depends(get_poller)) -> dict[str, Any]:
    result = await poller.trigger()
    if result is None:
        return AggregateResult().model_dump(mode="json", by_alias=True)
    return result.model_dump(mode="json", by_alias=True)


def _compute_etag(content: str | bytes) -> str:
    """Compute a weak ETag from content."""
    if isinstance(content, str):
        content = content.encode()
    digest = hashlib.md5(content).hexdigest()[:16]
    return f'W/"{digest}"'
