"""Oracle score: rewards being right early, against the crowd.

Per resolved market a user contributes

    net winning-side shares x (1 - weighted average entry price)

where the average is taken over winning-side BUY entries only (price paid per
share = amount / shares). SELLs reduce net shares but leave the average alone.
Non-positive contributions are dropped, never subtracted.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from src.pm_common.enums import EntryType, MarketStatus, Side
from src.pm_market.domain.models import Market
from src.pm_trading.domain.models import LedgerEntry


@dataclass(frozen=True)
class MarketContribution:
    market_id: str
    contribution: float
    shares_on_correct_side: float
    avg_entry_price: float


@dataclass(frozen=True)
class OracleScore:
    user_id: str
    score: float
    markets_scored: int
    details: list[MarketContribution] = field(default_factory=list)


def calculate_market_contribution(
    market_id: str, entries: Iterable[LedgerEntry], resolution: Side
) -> MarketContribution | None:
    winning = [e for e in entries if not e.refunded and e.side == resolution]
    buy_shares = sum(abs(e.shares) for e in winning if e.entry_type == EntryType.BUY)
    sell_shares = sum(abs(e.shares) for e in winning if e.entry_type == EntryType.SELL)
    net_shares = buy_shares - sell_shares
    if net_shares <= 0:
        return None

    weighted = 0.0
    bought = 0.0
    for entry in winning:
        shares = abs(entry.shares)
        if entry.entry_type != EntryType.BUY or shares <= 0:
            continue
        weighted += abs(entry.amount)  # (amount / shares) * shares
        bought += shares
    if bought == 0:
        return None

    avg_entry_price = weighted / bought
    bonus = 1 - avg_entry_price
    if bonus <= 0:
        return None
    return MarketContribution(
        market_id=market_id,
        contribution=net_shares * bonus,
        shares_on_correct_side=net_shares,
        avg_entry_price=avg_entry_price,
    )


def _scorable(market: Market | None) -> bool:
    return (
        market is not None
        and market.status == MarketStatus.RESOLVED
        and market.resolution in (Side.YES, Side.NO)
    )


def calculate_user_oracle_score(
    user_id: str, entries: Iterable[LedgerEntry], markets: dict[str, Market]
) -> OracleScore:
    by_market: dict[str, list[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        if not entry.refunded:
            by_market[entry.market_id].append(entry)

    details = []
    for market_id, market_entries in by_market.items():
        market = markets.get(market_id)
        if not _scorable(market):
            continue
        result = calculate_market_contribution(market_id, market_entries, market.resolution)
        if result is not None and result.contribution > 0:
            details.append(result)

    return OracleScore(
        user_id=user_id,
        score=sum(d.contribution for d in details),
        markets_scored=len(details),
        details=details,
    )


def build_leaderboard(
    entries: Iterable[LedgerEntry], markets: dict[str, Market], limit: int | None = None
) -> list[OracleScore]:
    """Scores for every user with a positive score, highest first."""
    by_user: dict[str, list[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        if entry.market_id in markets:
            by_user[entry.user_id].append(entry)

    scores = [
        calculate_user_oracle_score(user_id, user_entries, markets)
        for user_id, user_entries in by_user.items()
    ]
    ranked = sorted(
        (s for s in scores if s.score > 0), key=lambda s: (-s.score, s.user_id)
    )
    return ranked[:limit] if limit is not None else ranked
