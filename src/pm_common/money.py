"""Rounding utilities for play-money amounts and share counts.

Balances and amounts are floats rounded to 2 dp; share counts keep 6 dp.
Rounding happens at boundaries only (ledger writes, wallet writes, API output),
never inside pricing loops.
"""

import math
import sys

from src.pm_common.errors import InvalidParameterError, NumericFaultError

CURRENCY_PLACES = 2
SHARE_PLACES = 6
DUST = 0.001  # |x| below this is displayed and folded as zero
MIN_AMOUNT = 0.01


def _round_half_up(value: float, places: int) -> float:
    factor = 10**places
    return math.floor((value + sys.float_info.epsilon) * factor + 0.5) / factor


def round2(value: float) -> float:
    """Round to currency precision, half away from zero for positives: 0.125 -> 0.13."""
    return _round_half_up(float(value), CURRENCY_PLACES)


def round_shares(value: float) -> float:
    return _round_half_up(float(value), SHARE_PLACES)


def clean_small(value: float) -> float:
    """Collapse floating dust to exactly zero."""
    return 0.0 if abs(value) < DUST else value


def ensure_finite(value: float, label: str) -> float:
    """Computed values only: NaN/Infinity is a bug, never a default."""
    if not math.isfinite(value):
        raise NumericFaultError(label)
    return value


def require_finite(value: object, label: str) -> float:
    """Caller-supplied values: reject non-numbers and NaN/Infinity up front."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidParameterError(f"{label} must be a number")
    if not math.isfinite(value):
        raise InvalidParameterError(f"{label} must be finite")
    return float(value)


def require_positive(value: object, label: str) -> float:
    number = require_finite(value, label)
    if number <= 0:
        raise InvalidParameterError(f"{label} must be a positive number")
    return number


def require_money(value: object, label: str) -> float:
    """Caller-supplied currency amount, rounded to cents; anything under one cent is rejected."""
    amount = round2(require_positive(value, label))
    if amount < MIN_AMOUNT:
        raise InvalidParameterError(f"{label} must be at least {MIN_AMOUNT:.2f}")
    return amount


def money_display(amount: float) -> str:
    """Format for messages: 65 -> '$65.00', -12.5 -> '-$12.50'."""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"
