# src/pm_admin/api/router.py
"""Admin REST API. Every endpoint requires the admin role claim."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from src.pm_admin.application.service import AdminService
from src.pm_common.enums import Side
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_admin
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_market.application.schemas import CreateMarketRequest

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


class ResolveRequest(BaseModel):
    resolution: Side


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class StipendRequest(BaseModel):
    dry_run: bool = False


@router.post("/markets", status_code=201)
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    result = await _service.create_market(
        caller, body.question, body.b, body.scope_id, body.initial_probability, body.category
    )
    return success_response(result, request)


@router.post("/markets/{market_id}/lock")
async def lock_market(
    market_id: str,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    return success_response(await _service.lock_market(caller, market_id), request)


@router.post("/markets/{market_id}/unlock")
async def unlock_market(
    market_id: str,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    return success_response(await _service.unlock_market(caller, market_id), request)


@router.post("/markets/{market_id}/resolve")
async def resolve_market(
    market_id: str,
    body: ResolveRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    result = await _service.resolve_market(caller, market_id, body.resolution)
    return success_response(result, request)


@router.post("/markets/{market_id}/cancel")
async def cancel_market(
    market_id: str,
    body: CancelRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    result = await _service.cancel_market(caller, market_id, body.reason)
    return success_response(result, request)


@router.post("/ledger/{entry_id}/refund")
async def refund_entry(
    entry_id: str,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    return success_response(await _service.refund_entry(caller, entry_id), request)


@router.post("/stipend")
async def run_stipend(
    body: StipendRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_admin)],
) -> ApiResponse:
    return success_response(await _service.run_stipend(caller, body.dry_run), request)
