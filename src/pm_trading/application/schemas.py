"""Trade request/response schemas for placeBet and sellShares."""
from pydantic import BaseModel, ConfigDict, Field

from src.pm_common.enums import Side
from src.pm_lmsr.domain.pricing import Pool
from src.pm_trading.domain.models import BetResult, SellResult


class PoolSchema(BaseModel):
    yes: float
    no: float

    @classmethod
    def from_pool(cls, pool: Pool) -> "PoolSchema":
        return cls(yes=pool.yes, no=pool.no)


class PlaceBetRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    market_id: str = Field(min_length=1, max_length=128)
    side: Side
    amount: float = Field(ge=0.01, description="Play-money amount to spend, rounded to cents")
    scope_id: str | None = Field(default=None, max_length=128)


class SellSharesRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    market_id: str = Field(min_length=1, max_length=128)
    side: Side
    shares: float = Field(gt=0, description="Shares to return to the market maker")
    scope_id: str | None = Field(default=None, max_length=128)


class PlaceBetResponse(BaseModel):
    shares: float
    new_probability: float
    new_pool: PoolSchema
    entry_id: str
    balance: float

    @classmethod
    def from_result(cls, result: BetResult) -> "PlaceBetResponse":
        return cls(
            shares=result.shares,
            new_probability=result.new_probability,
            new_pool=PoolSchema.from_pool(result.new_pool),
            entry_id=result.entry_id,
            balance=result.balance,
        )


class SellSharesResponse(BaseModel):
    payout: float
    new_probability: float
    new_pool: PoolSchema
    entry_id: str
    balance: float

    @classmethod
    def from_result(cls, result: SellResult) -> "SellSharesResponse":
        return cls(
            payout=result.payout,
            new_probability=result.new_probability,
            new_pool=PoolSchema.from_pool(result.new_pool),
            entry_id=result.entry_id,
            balance=result.balance,
        )
