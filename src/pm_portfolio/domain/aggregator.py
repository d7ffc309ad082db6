"""Position aggregator: folds raw ledger entries into net positions.

Fold rule per (user, market): BUY adds |shares| and |amount| to its side,
SELL subtracts them. Refunded entries are skipped everywhere. The same fold
feeds portfolio views, sell-side held-share checks, resolution payouts and
Oracle scoring.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from src.pm_common.enums import EntryType, MarketStatus, Side
from src.pm_common.money import DUST, clean_small, round2
from src.pm_market.domain.models import Market
from src.pm_portfolio.domain.models import HeldShares, PortfolioSummary, Position
from src.pm_trading.domain.models import LedgerEntry

ACTIVE_STATUSES = (MarketStatus.OPEN, MarketStatus.LOCKED)


@dataclass
class PositionFold:
    yes_shares: float = 0.0
    no_shares: float = 0.0
    yes_cost: float = 0.0
    no_cost: float = 0.0

    def apply(self, entry: LedgerEntry) -> None:
        sign = 1.0 if entry.entry_type == EntryType.BUY else -1.0
        shares = sign * abs(entry.shares)
        cost = sign * abs(entry.amount)
        if entry.side == Side.YES:
            self.yes_shares += shares
            self.yes_cost += cost
        else:
            self.no_shares += shares
            self.no_cost += cost

    def shares(self, side: Side) -> float:
        return self.yes_shares if side == Side.YES else self.no_shares

    def cost(self, side: Side) -> float:
        return self.yes_cost if side == Side.YES else self.no_cost


def fold_entries(entries: Iterable[LedgerEntry]) -> PositionFold:
    fold = PositionFold()
    for entry in entries:
        if not entry.refunded:
            fold.apply(entry)
    return fold


def fold_by_user(entries: Iterable[LedgerEntry]) -> dict[str, PositionFold]:
    """One market's entries -> fold per user (insertion order = first trade)."""
    folds: dict[str, PositionFold] = defaultdict(PositionFold)
    for entry in entries:
        if not entry.refunded:
            folds[entry.user_id].apply(entry)
    return dict(folds)


def fold_by_market(entries: Iterable[LedgerEntry]) -> dict[str, PositionFold]:
    """One user's entries -> fold per market."""
    folds: dict[str, PositionFold] = defaultdict(PositionFold)
    for entry in entries:
        if not entry.refunded:
            folds[entry.market_id].apply(entry)
    return dict(folds)


def held_shares(entries: Iterable[LedgerEntry]) -> HeldShares:
    """Shares the user can still sell; dust collapses to 0, never negative."""
    fold = fold_entries(entries)

    def clean(value: float) -> float:
        return 0.0 if abs(value) < DUST else max(0.0, value)

    return HeldShares(yes=clean(fold.yes_shares), no=clean(fold.no_shares))


def _display(value: float) -> float:
    return max(0.0, clean_small(round2(value)))


def dominant_side(yes_shares: float, no_shares: float) -> str:
    if yes_shares > no_shares:
        return Side.YES.value
    if no_shares > yes_shares:
        return Side.NO.value
    return "MIXED"


def value_position(
    market: Market, yes_shares: float, no_shares: float, total_cost: float
) -> float:
    if market.status == MarketStatus.RESOLVED:
        if market.resolution == Side.YES:
            return round2(yes_shares)
        if market.resolution == Side.NO:
            return round2(no_shares)
        return 0.0
    if market.status == MarketStatus.CANCELLED:
        return round2(total_cost)
    p = market.current_probability()
    return round2(yes_shares * p + no_shares * (1 - p))


def build_position(market: Market, fold: PositionFold) -> Position | None:
    """None when both sides have been fully exited."""
    yes_shares = _display(fold.yes_shares)
    no_shares = _display(fold.no_shares)
    if yes_shares <= 0 and no_shares <= 0:
        return None

    yes_cost = _display(fold.yes_cost)
    no_cost = _display(fold.no_cost)
    total_cost = round2(yes_cost + no_cost)
    market_value = value_position(market, yes_shares, no_shares, total_cost)
    pnl = round2(market_value - total_cost)
    pnl_pct = round2(pnl / total_cost * 100) if total_cost > 0 else 0.0

    return Position(
        market_id=market.id,
        market_question=market.question,
        market_status=market.status,
        market_probability=market.current_probability(),
        market_resolution=market.resolution,
        market_category=market.category,
        yes_shares=yes_shares,
        no_shares=no_shares,
        yes_cost=yes_cost,
        no_cost=no_cost,
        side=dominant_side(yes_shares, no_shares),
        total_cost=total_cost,
        market_value=market_value,
        unrealized_pnl=pnl,
        unrealized_pnl_pct=pnl_pct,
    )


def aggregate_positions(
    entries: Iterable[LedgerEntry], markets: dict[str, Market]
) -> list[Position]:
    positions = []
    for market_id, fold in fold_by_market(entries).items():
        market = markets.get(market_id)
        if market is None:
            continue
        position = build_position(market, fold)
        if position is not None:
            positions.append(position)
    return positions


def summarize_portfolio(
    cash_balance: float, positions: Iterable[Position], starting_balance: float
) -> PortfolioSummary:
    """Summary over OPEN/LOCKED positions only; settled ones are already cash."""
    active = [p for p in positions if p.market_status in ACTIVE_STATUSES]
    cash = round2(cash_balance)
    yes_exposure = round2(sum(p.yes_shares * p.market_probability for p in active))
    no_exposure = round2(sum(p.no_shares * (1 - p.market_probability) for p in active))
    positions_value = round2(sum(p.market_value for p in active))
    portfolio_value = round2(cash + positions_value)
    base = portfolio_value if portfolio_value > 0 else 1.0

    return PortfolioSummary(
        cash_balance=cash,
        positions_value=positions_value,
        portfolio_value=portfolio_value,
        pnl=round2(portfolio_value - starting_balance),
        yes_exposure=yes_exposure,
        no_exposure=no_exposure,
        market_count=len(active),
        cash_pct=round2(cash / base * 100),
        yes_pct=round2(yes_exposure / base * 100),
        no_pct=round2(no_exposure / base * 100),
    )
