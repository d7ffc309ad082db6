"""Domain models for pm_wallet: pure dataclasses, no SQLAlchemy dependency."""

import math
from dataclasses import dataclass, replace
from datetime import datetime

from src.pm_common.errors import InsufficientBalanceError, InvalidWalletStateError
from src.pm_common.money import round2


@dataclass(frozen=True)
class WalletKey:
    user_id: str
    scope_id: str | None  # None = global wallet


@dataclass
class Wallet:
    user_id: str
    scope_id: str | None
    balance: float                 # never negative between trades
    lifetime_rep: float = 0.0      # cumulative realized result from resolutions
    stipend_last_injected_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def key(self) -> WalletKey:
        return WalletKey(self.user_id, self.scope_id)

    def available(self) -> float:
        if not math.isfinite(self.balance):
            raise InvalidWalletStateError(f"balance for {self.user_id} is not finite")
        return self.balance

    def debited(self, amount: float, now: datetime) -> "Wallet":
        available = self.available()
        if available < amount:
            raise InsufficientBalanceError(amount, available)
        return replace(self, balance=max(0.0, round2(available - amount)), updated_at=now)

    def credited(self, amount: float, now: datetime) -> "Wallet":
        return replace(self, balance=round2(self.available() + amount), updated_at=now)
