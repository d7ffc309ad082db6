"""Portfolio REST API: 2 endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_eligible_caller
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_portfolio.application.schemas import (
    PortfolioSummaryResponse,
    PositionListResponse,
    PositionResponse,
)
from src.pm_portfolio.application.service import PortfolioService

router = APIRouter(prefix="/portfolio", tags=["portfolio"])
_service = PortfolioService()


@router.get("/positions")
async def list_positions(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
    scope_id: Annotated[str | None, Query(max_length=128)] = None,
) -> ApiResponse:
    positions = await _service.list_positions(caller, scope_id)
    data = PositionListResponse(
        items=[PositionResponse.from_domain(p) for p in positions],
        total=len(positions),
    )
    return success_response(data.model_dump(), request)


@router.get("/summary")
async def get_summary(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
    scope_id: Annotated[str | None, Query(max_length=128)] = None,
) -> ApiResponse:
    summary = await _service.get_summary(caller, scope_id)
    return success_response(PortfolioSummaryResponse.from_domain(summary).model_dump(), request)
