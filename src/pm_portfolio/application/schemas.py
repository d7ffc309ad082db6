"""Pydantic schemas for portfolio API."""
from pydantic import BaseModel

from src.pm_portfolio.domain.models import PortfolioSummary, Position


class PositionResponse(BaseModel):
    market_id: str
    market_question: str
    market_status: str
    market_probability: float
    market_resolution: str | None
    market_category: str | None
    yes_shares: float
    no_shares: float
    yes_cost: float
    no_cost: float
    side: str
    total_cost: float
    market_value: float
    unrealized_pnl: float
    unrealized_pnl_pct: float

    @classmethod
    def from_domain(cls, p: Position) -> "PositionResponse":
        return cls(
            market_id=p.market_id,
            market_question=p.market_question,
            market_status=p.market_status.value,
            market_probability=p.market_probability,
            market_resolution=p.market_resolution.value if p.market_resolution else None,
            market_category=p.market_category,
            yes_shares=p.yes_shares,
            no_shares=p.no_shares,
            yes_cost=p.yes_cost,
            no_cost=p.no_cost,
            side=p.side,
            total_cost=p.total_cost,
            market_value=p.market_value,
            unrealized_pnl=p.unrealized_pnl,
            unrealized_pnl_pct=p.unrealized_pnl_pct,
        )


class PositionListResponse(BaseModel):
    items: list[PositionResponse]
    total: int


class PortfolioSummaryResponse(BaseModel):
    cash_balance: float
    positions_value: float
    portfolio_value: float
    pnl: float
    yes_exposure: float
    no_exposure: float
    market_count: int
    cash_pct: float
    yes_pct: float
    no_pct: float

    @classmethod
    def from_domain(cls, s: PortfolioSummary) -> "PortfolioSummaryResponse":
        return cls(**vars(s))
