"""Wallet REST API.

POST /wallets          open the caller's wallet (idempotent)
GET  /wallets/balance  current balance for a scope (global by default)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_eligible_caller
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_wallet.application.schemas import OpenWalletRequest, WalletResponse
from src.pm_wallet.application.service import WalletService

router = APIRouter(prefix="/wallets", tags=["wallets"])
_service = WalletService()


@router.post("")
async def open_wallet(
    body: OpenWalletRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
) -> ApiResponse:
    wallet = await _service.open_wallet(caller, body.scope_id)
    return success_response(WalletResponse.from_wallet(wallet).model_dump(), request)


@router.get("/balance")
async def get_balance(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
    scope_id: Annotated[str | None, Query(max_length=128)] = None,
) -> ApiResponse:
    wallet = await _service.get_balance(caller, scope_id)
    return success_response(WalletResponse.from_wallet(wallet).model_dump(), request)
