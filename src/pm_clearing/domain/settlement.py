"""Settlement math: what each user is owed when a market resolves or is cancelled.

Pure functions over ledger entries; the service layer does the writing.
Refunded entries never count.
"""

from collections import defaultdict
from collections.abc import Iterable

from src.pm_clearing.domain.models import UserResolution
from src.pm_common.enums import Side
from src.pm_common.money import round2
from src.pm_portfolio.domain.aggregator import PositionFold, fold_by_user
from src.pm_trading.domain.models import LedgerEntry


def user_resolution(fold: PositionFold, resolution: Side) -> UserResolution:
    losing = Side.NO if resolution == Side.YES else Side.YES
    return UserResolution(
        payout=round2(max(0.0, fold.shares(resolution))),
        lost_investment=round2(max(0.0, fold.cost(losing))),
    )


def compute_resolution_payouts(
    entries: Iterable[LedgerEntry], resolution: Side
) -> dict[str, UserResolution]:
    """Per-user payout (winning-side net shares at 1.0) and lost investment.

    Users with neither are left out: nothing to pay and nothing to tell them.
    """
    results = {}
    for user_id, fold in fold_by_user(entries).items():
        outcome = user_resolution(fold, resolution)
        if outcome.payout > 0 or outcome.lost_investment > 0:
            results[user_id] = outcome
    return results


def compute_refunds(entries: Iterable[LedgerEntry]) -> dict[str, float]:
    """Net signed contribution per user; only strictly positive nets are refunded.

    A user who sold for more than they paid is not charged back.
    """
    net: dict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.refunded:
            continue
        net[entry.user_id] = round2(net[entry.user_id] + entry.amount)
    return {user_id: round2(total) for user_id, total in net.items() if total > 0}
