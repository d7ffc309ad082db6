"""Trades REST API: placeBet and sellShares.

POST /trades/bet   spend an amount on a side, receive shares
POST /trades/sell  return shares on a side, receive a payout
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import require_eligible_caller
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_trading.application.schemas import (
    PlaceBetRequest,
    PlaceBetResponse,
    SellSharesRequest,
    SellSharesResponse,
)
from src.pm_trading.application.service import TradingService

router = APIRouter(prefix="/trades", tags=["trades"])
_service = TradingService()


@router.post("/bet")
async def place_bet(
    body: PlaceBetRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
) -> ApiResponse:
    result = await _service.place_bet(
        caller, body.market_id, body.side, body.amount, body.scope_id
    )
    return success_response(PlaceBetResponse.from_result(result).model_dump(), request)


@router.post("/sell")
async def sell_shares(
    body: SellSharesRequest,
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
) -> ApiResponse:
    result = await _service.sell_shares(
        caller, body.market_id, body.side, body.shares, body.scope_id
    )
    return success_response(SellSharesResponse.from_result(result).model_dump(), request)
