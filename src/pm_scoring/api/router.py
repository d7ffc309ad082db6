"""Oracle score REST API.

GET /scoring/oracle/me           caller's score with per-market details
GET /scoring/oracle/leaderboard  all users, global resolved markets, highest first
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_caller, require_eligible_caller
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_scoring.application.schemas import (
    LeaderboardItem,
    LeaderboardResponse,
    OracleScoreResponse,
)
from src.pm_scoring.application.service import ScoringService

router = APIRouter(prefix="/scoring/oracle", tags=["scoring"])
_service = ScoringService()


@router.get("/me")
async def my_score(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(require_eligible_caller)],
) -> ApiResponse:
    score = await _service.get_my_score(caller)
    return success_response(OracleScoreResponse.from_score(score).model_dump(), request)


@router.get("/leaderboard")
async def leaderboard(
    request: Request,
    caller: Annotated[CallerIdentity, Depends(get_caller)],
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    scores = await _service.get_leaderboard(limit)
    items = [
        LeaderboardItem(
            rank=i,
            user_id=s.user_id,
            oracle_score=round(s.score, 4),
            markets_scored=s.markets_scored,
        )
        for i, s in enumerate(scores, start=1)
    ]
    return success_response(LeaderboardResponse(items=items, total=len(items)).model_dump(), request)
