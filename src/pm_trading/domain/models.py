"""Ledger entries and trade results.

A ledger entry is one BUY or SELL on one side of one market. Entries are
append-only; the only later change is the refund marker set by an admin refund.

Sign convention:
  BUY:  amount > 0 (cost paid),        shares >= 0 (acquired)
  SELL: amount <= 0 (payout received), shares < 0  (liquidated)
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime

from src.pm_common.enums import EntryType, Side
from src.pm_common.errors import InvalidParameterError
from src.pm_common.id_generator import generate_id
from src.pm_lmsr.domain.pricing import Pool


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    user_id: str
    market_id: str
    scope_id: str | None
    side: Side
    entry_type: EntryType
    amount: float
    shares: float
    probability: float               # YES price right after this trade
    created_at: datetime
    refunded: bool = False
    refunded_at: datetime | None = None
    refunded_by: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "side", Side(self.side))
        object.__setattr__(self, "entry_type", EntryType(self.entry_type))
        for label, value in (
            ("amount", self.amount),
            ("shares", self.shares),
            ("probability", self.probability),
        ):
            if not math.isfinite(value):
                raise InvalidParameterError(f"ledger {label} must be finite")
        if not 0 <= self.probability <= 1:
            raise InvalidParameterError("ledger probability must be within [0, 1]")
        if self.entry_type == EntryType.BUY:
            if self.amount <= 0 or self.shares < 0:
                raise InvalidParameterError("BUY entries need amount > 0 and shares >= 0")
        elif self.amount > 0 or self.shares >= 0:
            raise InvalidParameterError("SELL entries need amount <= 0 and shares < 0")

    @classmethod
    def buy(
        cls,
        user_id: str,
        market_id: str,
        scope_id: str | None,
        side: Side,
        amount: float,
        shares: float,
        probability: float,
        now: datetime,
    ) -> "LedgerEntry":
        return cls(
            id=generate_id("bet"),
            user_id=user_id,
            market_id=market_id,
            scope_id=scope_id,
            side=side,
            entry_type=EntryType.BUY,
            amount=amount,
            shares=shares,
            probability=probability,
            created_at=now,
        )

    @classmethod
    def sell(
        cls,
        user_id: str,
        market_id: str,
        scope_id: str | None,
        side: Side,
        payout: float,
        shares: float,
        probability: float,
        now: datetime,
    ) -> "LedgerEntry":
        return cls(
            id=generate_id("bet"),
            user_id=user_id,
            market_id=market_id,
            scope_id=scope_id,
            side=side,
            entry_type=EntryType.SELL,
            amount=-payout,
            shares=-shares,
            probability=probability,
            created_at=now,
        )

    @property
    def is_buy(self) -> bool:
        return self.entry_type == EntryType.BUY

    def as_refunded(self, actor: str, now: datetime) -> "LedgerEntry":
        return replace(self, refunded=True, refunded_at=now, refunded_by=actor)


@dataclass(frozen=True)
class BetResult:
    shares: float
    new_probability: float
    new_pool: Pool
    entry_id: str
    balance: float


@dataclass(frozen=True)
class SellResult:
    payout: float
    new_probability: float
    new_pool: Pool
    entry_id: str
    balance: float
