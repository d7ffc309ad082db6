"""Domain models for pm_market: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import MarketStatus, Side
from src.pm_lmsr.domain.pricing import Pool, get_price


@dataclass
class Market:
    id: str
    question: str
    pool: Pool                       # LMSR state, may go negative
    b: float                         # liquidity parameter, > 0
    probability: float               # cached YES price; recompute before trusting
    status: MarketStatus
    resolution: Side | None = None
    scope_id: str | None = None      # None = global market
    total_volume: float = 0.0
    category: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    locked_at: datetime | None = None
    resolved_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    settlement_pending: bool = False  # terminal status set, payouts still being written
    version: int = 0

    def current_probability(self) -> float:
        return get_price(self.pool, self.b)

    @property
    def is_terminal(self) -> bool:
        return self.status in (MarketStatus.RESOLVED, MarketStatus.CANCELLED)
