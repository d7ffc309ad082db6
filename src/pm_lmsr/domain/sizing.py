"""Trade sizing on top of the LMSR kernel.

Buy:  find s >= 0 with C(pool + s*side) - C(pool) = amount (bisection; the left
      side is strictly increasing in s because C is convex).
Sell: payout = C(pool) - C(pool - s*side), evaluated directly.

Outputs are rounded at the end (shares to 6 dp, payout to 2 dp); the pool in a
quote always reflects the rounded share count actually credited or debited.
"""

from dataclasses import dataclass

from src.pm_common.enums import Side
from src.pm_common.errors import ConvergenceFailureError, UnsafeSellBoundsError
from src.pm_common.money import ensure_finite, require_positive, round2, round_shares
from src.pm_lmsr.domain.pricing import Pool, cost, get_price, parse_side, side_price, validate_b

MAX_ITERATIONS = 100
SEARCH_TOLERANCE = 1e-4      # stop early once |cost - amount| < this
CONVERGENCE_TOLERANCE = 1e-2  # reject the result if still further off than this
MIN_SEED_PRICE = 1e-3
MAX_BRACKET_DOUBLINGS = 64
PAYOUT_NOISE = 1e-9
DEFAULT_SELL_BOUND_MULTIPLIER = 20.0


@dataclass(frozen=True)
class BuyQuote:
    shares: float
    new_pool: Pool
    new_probability: float  # YES price after the trade, clamped


@dataclass(frozen=True)
class SellQuote:
    payout: float
    new_pool: Pool
    new_probability: float


def _buy_cost(pool: Pool, side: Side, shares: float, b: float, base_cost: float) -> float:
    moved = pool.shifted(side, shares)
    return cost(moved.yes, moved.no, b) - base_cost


def calculate_buy(pool: Pool, amount: float, side: Side, b: float) -> BuyQuote:
    """Shares bought for spending `amount` on `side`.

    Raises InvalidParameterError for bad inputs and ConvergenceFailureError
    when the search cannot hit `amount` within CONVERGENCE_TOLERANCE.
    """
    b = validate_b(b)
    amount = require_positive(amount, "amount")
    side = parse_side(side)

    base_cost = cost(pool.yes, pool.no, b)
    current = side_price(pool, side, b)

    # Marginal price only rises while buying, so cost(s) >= s * current and
    # amount / current brackets the root; doubling covers an underflowed price.
    lo = 0.0
    hi = 2 * amount / max(current, MIN_SEED_PRICE)
    for _ in range(MAX_BRACKET_DOUBLINGS):
        if _buy_cost(pool, side, hi, b, base_cost) >= amount:
            break
        lo = hi
        hi *= 2
    else:
        raise ConvergenceFailureError()

    shares = hi
    for _ in range(MAX_ITERATIONS):
        mid = (lo + hi) / 2
        spent = _buy_cost(pool, side, mid, b, base_cost)
        shares = mid
        if abs(spent - amount) < SEARCH_TOLERANCE:
            break
        if spent < amount:
            lo = mid
        else:
            hi = mid

    converged = _buy_cost(pool, side, shares, b, base_cost)
    if abs(converged - amount) > CONVERGENCE_TOLERANCE:
        raise ConvergenceFailureError()

    shares = round_shares(max(0.0, ensure_finite(shares, "shares")))
    new_pool = pool.shifted(side, shares)
    new_probability = ensure_finite(get_price(new_pool, b), "probability")
    return BuyQuote(shares=shares, new_pool=new_pool, new_probability=new_probability)


def calculate_sell(
    pool: Pool,
    shares: float,
    side: Side,
    b: float,
    bound_multiplier: float = DEFAULT_SELL_BOUND_MULTIPLIER,
) -> SellQuote:
    """Payout for returning `shares` of `side` to the market maker.

    Does not check what the seller holds or current side liquidity; callers do.
    Raises UnsafeSellBoundsError if either pool side would drop below
    -bound_multiplier * b.
    """
    b = validate_b(b)
    shares = require_positive(shares, "shares")
    bound_multiplier = require_positive(bound_multiplier, "bound_multiplier")
    side = parse_side(side)

    new_pool = pool.shifted(side, -shares)
    bound = bound_multiplier * b
    if new_pool.yes < -bound or new_pool.no < -bound:
        raise UnsafeSellBoundsError()

    payout = cost(pool.yes, pool.no, b) - cost(new_pool.yes, new_pool.no, b)
    payout = ensure_finite(payout, "payout")
    if payout < 0 and abs(payout) < PAYOUT_NOISE:
        payout = 0.0
    new_probability = ensure_finite(get_price(new_pool, b), "probability")
    return SellQuote(
        payout=round2(max(0.0, payout)),
        new_pool=new_pool,
        new_probability=new_probability,
    )
