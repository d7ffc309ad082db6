"""Logarithmic market scoring rule (LMSR): stateless cost and price functions.

    C(q_yes, q_no) = b * ln(e^(q_yes/b) + e^(q_no/b))
    p_yes          = e^(q_yes/b) / (e^(q_yes/b) + e^(q_no/b))

Both are evaluated with the max-subtraction trick so neither exponent is ever
positive: large or badly skewed pools cannot overflow.
"""

import math
from dataclasses import dataclass

from src.pm_common.enums import Side
from src.pm_common.errors import InvalidParameterError

# External prices stay inside (PRICE_EPSILON, 1 - PRICE_EPSILON)
PRICE_EPSILON = 1e-9


@dataclass(frozen=True)
class Pool:
    """Cumulative signed share counts. Scoring-rule state, not house inventory."""

    yes: float = 0.0
    no: float = 0.0

    def __post_init__(self) -> None:
        for label, value in (("pool.yes", self.yes), ("pool.no", self.no)):
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise InvalidParameterError(f"{label} must be a number")
            if not math.isfinite(value):
                raise InvalidParameterError(f"{label} must be finite")

    def side(self, side: Side) -> float:
        return self.yes if side == Side.YES else self.no

    def shifted(self, side: Side, delta: float) -> "Pool":
        """Pool after adding `delta` shares (negative to remove) on one side."""
        if side == Side.YES:
            return Pool(yes=self.yes + delta, no=self.no)
        return Pool(yes=self.yes, no=self.no + delta)

    def to_dict(self) -> dict[str, float]:
        return {"yes": self.yes, "no": self.no}


def validate_b(b: object) -> float:
    if isinstance(b, bool) or not isinstance(b, int | float):
        raise InvalidParameterError("b must be a number")
    if not math.isfinite(b):
        raise InvalidParameterError("b must be finite")
    if b <= 0:
        raise InvalidParameterError("b must be positive")
    return float(b)


def cost(q_yes: float, q_no: float, b: float) -> float:
    """C(q) via log-sum-exp."""
    top = max(q_yes, q_no)
    return top + b * math.log(math.exp((q_yes - top) / b) + math.exp((q_no - top) / b))


def price(q_yes: float, q_no: float, b: float) -> float:
    """Instantaneous price of the first argument's side; softmax form, in [0, 1]."""
    top = max(q_yes, q_no)
    exp_yes = math.exp((q_yes - top) / b)
    exp_no = math.exp((q_no - top) / b)
    return exp_yes / (exp_yes + exp_no)


def pool_cost(pool: Pool, b: float) -> float:
    return cost(pool.yes, pool.no, validate_b(b))


def side_price(pool: Pool, side: Side, b: float) -> float:
    """Raw price of `side`. price(YES) + price(NO) == 1 up to one ulp."""
    b = validate_b(b)
    if side == Side.YES:
        return price(pool.yes, pool.no, b)
    return price(pool.no, pool.yes, b)


def clamp_price(raw: float) -> float:
    return min(1.0 - PRICE_EPSILON, max(PRICE_EPSILON, raw))


def get_price(pool: Pool, b: float, side: Side = Side.YES) -> float:
    """Externally exposed price: strictly inside (0, 1) even at extreme imbalance."""
    return clamp_price(side_price(pool, side, b))


def pool_for_probability(probability: float, b: float) -> Pool:
    """Seed pool whose YES price equals `probability`; the cheaper side stays at 0."""
    b = validate_b(b)
    if not (0 < probability < 1):
        raise InvalidParameterError("initial probability must be strictly between 0 and 1")
    tilt = b * math.log(probability / (1 - probability))
    if tilt >= 0:
        return Pool(yes=tilt, no=0.0)
    return Pool(yes=0.0, no=-tilt)


def parse_side(value: object) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise InvalidParameterError("side must be YES or NO") from None
