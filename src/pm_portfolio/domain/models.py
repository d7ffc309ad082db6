"""Domain models for pm_portfolio: derived views, never stored."""

from dataclasses import dataclass

from src.pm_common.enums import MarketStatus, Side


@dataclass(frozen=True)
class HeldShares:
    yes: float
    no: float

    def side(self, side: Side) -> float:
        return self.yes if side == Side.YES else self.no


@dataclass(frozen=True)
class Position:
    market_id: str
    market_question: str
    market_status: MarketStatus
    market_probability: float
    market_resolution: Side | None
    market_category: str | None
    yes_shares: float
    no_shares: float
    yes_cost: float
    no_cost: float
    side: str  # YES | NO | MIXED
    total_cost: float
    market_value: float
    unrealized_pnl: float
    unrealized_pnl_pct: float


@dataclass(frozen=True)
class PortfolioSummary:
    cash_balance: float
    positions_value: float
    portfolio_value: float
    pnl: float                # portfolio value vs. starting balance
    yes_exposure: float
    no_exposure: float
    market_count: int
    cash_pct: float
    yes_pct: float
    no_pct: float
