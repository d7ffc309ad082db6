"""pm_market REST endpoints.

GET /markets              list by status and scope (global by default)
GET /markets/{market_id}  full detail, probability recomputed from the pool
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_common.enums import MarketStatus
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_caller
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_market.application.schemas import MarketDetail, MarketListResponse
from src.pm_market.application.service import MarketApplicationService

router = APIRouter(prefix="/markets", tags=["markets"])

_service = MarketApplicationService()


@router.get("")
async def list_markets(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    status: MarketStatus | None = Query(None),
    scope_id: str | None = Query(None, max_length=128),
) -> ApiResponse:
    markets = await _service.list_markets(status, scope_id)
    data = MarketListResponse(
        items=[MarketDetail.from_domain(m) for m in markets], total=len(markets)
    )
    return success_response(data.model_dump(), request)


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
) -> ApiResponse:
    market = await _service.get_market(market_id)
    return success_response(MarketDetail.from_domain(market).model_dump(), request)
