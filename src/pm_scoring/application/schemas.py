"""Oracle score response schemas."""
from pydantic import BaseModel

from src.pm_scoring.domain.oracle import OracleScore


class MarketContributionItem(BaseModel):
    market_id: str
    contribution: float
    shares_on_correct_side: float
    avg_entry_price: float


class OracleScoreResponse(BaseModel):
    user_id: str
    oracle_score: float
    markets_scored: int
    details: list[MarketContributionItem]

    @classmethod
    def from_score(cls, score: OracleScore) -> "OracleScoreResponse":
        return cls(
            user_id=score.user_id,
            oracle_score=round(score.score, 4),
            markets_scored=score.markets_scored,
            details=[
                MarketContributionItem(
                    market_id=d.market_id,
                    contribution=round(d.contribution, 4),
                    shares_on_correct_side=round(d.shares_on_correct_side, 6),
                    avg_entry_price=round(d.avg_entry_price, 4),
                )
                for d in score.details
            ],
        )


class LeaderboardItem(BaseModel):
    rank: int
    user_id: str
    oracle_score: float
    markets_scored: int


class LeaderboardResponse(BaseModel):
    items: list[LeaderboardItem]
    total: int
