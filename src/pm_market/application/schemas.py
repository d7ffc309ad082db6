"""Pydantic schemas for pm_market API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.pm_market.domain.models import Market
from src.pm_trading.application.schemas import PoolSchema


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


class CreateMarketRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    question: str = Field(min_length=1, max_length=500)
    b: float | None = Field(default=None, gt=0, description="Liquidity parameter")
    scope_id: str | None = Field(default=None, max_length=128)
    initial_probability: float | None = Field(default=None, gt=0, lt=1)
    category: str | None = Field(default=None, max_length=64)


class MarketDetail(BaseModel):
    id: str
    question: str
    status: str
    resolution: str | None
    probability: float
    pool: PoolSchema
    b: float
    scope_id: str | None
    category: str | None
    total_volume: float
    created_by: str | None
    created_at: str | None
    locked_at: str | None
    resolved_at: str | None
    cancelled_at: str | None
    cancellation_reason: str | None
    settlement_pending: bool

    @classmethod
    def from_domain(cls, m: Market) -> "MarketDetail":
        return cls(
            id=m.id,
            question=m.question,
            status=m.status.value,
            resolution=m.resolution.value if m.resolution else None,
            probability=m.probability,
            pool=PoolSchema.from_pool(m.pool),
            b=m.b,
            scope_id=m.scope_id,
            category=m.category,
            total_volume=m.total_volume,
            created_by=m.created_by,
            created_at=_iso(m.created_at),
            locked_at=_iso(m.locked_at),
            resolved_at=_iso(m.resolved_at),
            cancelled_at=_iso(m.cancelled_at),
            cancellation_reason=m.cancellation_reason,
            settlement_pending=m.settlement_pending,
        )


class MarketListResponse(BaseModel):
    items: list[MarketDetail]
    total: int
