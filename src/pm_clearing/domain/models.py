"""Settlement records: one per (market, user) paid by bulk settlement."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import SettlementKind


@dataclass(frozen=True)
class SettlementRecord:
    market_id: str
    user_id: str
    scope_id: str | None
    kind: SettlementKind
    amount: float
    created_at: datetime


@dataclass(frozen=True)
class UserResolution:
    """What resolving a market means for one user."""

    payout: float           # net winning-side shares, paid 1:1
    lost_investment: float  # net cost basis left on the losing side
