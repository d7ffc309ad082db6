"""Wallet request/response schemas."""
from pydantic import BaseModel, Field

from src.pm_wallet.domain.models import Wallet


class OpenWalletRequest(BaseModel):
    scope_id: str | None = Field(default=None, max_length=128)


class WalletResponse(BaseModel):
    user_id: str
    scope_id: str | None
    balance: float
    lifetime_rep: float

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            user_id=wallet.user_id,
            scope_id=wallet.scope_id,
            balance=wallet.balance,
            lifetime_rep=wallet.lifetime_rep,
        )
