"""Market lifecycle rules.

OPEN <-> LOCKED any number of times; OPEN/LOCKED -> RESOLVED | CANCELLED, both
terminal. Transition helpers return a new Market and never touch the pool.
"""

from dataclasses import replace
from datetime import datetime

from src.pm_common.enums import MarketStatus, Side
from src.pm_common.errors import (
    InvalidParameterError,
    InvalidTransitionError,
    MarketAlreadyTerminalError,
    MarketNotTradeableError,
)
from src.pm_market.domain.models import Market

MAX_CANCELLATION_REASON = 500


def effective_status(status: str | None, resolution: str | None) -> MarketStatus:
    """Explicit status wins; a bare resolution implies RESOLVED; default OPEN."""
    if status:
        return MarketStatus(status)
    if resolution:
        return MarketStatus.RESOLVED
    return MarketStatus.OPEN


def check_invariants(market: Market) -> None:
    if market.status == MarketStatus.RESOLVED and market.resolution is None:
        raise InvalidParameterError(f"market {market.id} is RESOLVED without a resolution")
    if market.status != MarketStatus.RESOLVED and market.resolution is not None:
        raise InvalidParameterError(
            f"market {market.id} has resolution {market.resolution} but status {market.status}"
        )


def is_tradeable(market: Market) -> bool:
    return market.status == MarketStatus.OPEN


def assert_tradeable(market: Market) -> None:
    if not is_tradeable(market):
        raise MarketNotTradeableError(market.id, market.status.value)


def lock(market: Market, now: datetime) -> Market:
    if market.status != MarketStatus.OPEN:
        raise InvalidTransitionError(market.id, market.status.value, MarketStatus.LOCKED.value)
    return replace(market, status=MarketStatus.LOCKED, locked_at=now)


def unlock(market: Market) -> Market:
    if market.status != MarketStatus.LOCKED:
        raise InvalidTransitionError(market.id, market.status.value, MarketStatus.OPEN.value)
    return replace(market, status=MarketStatus.OPEN, locked_at=None)


def resolve(market: Market, resolution: Side, now: datetime) -> Market:
    if market.is_terminal:
        raise MarketAlreadyTerminalError(market.id, market.status.value)
    return replace(
        market,
        status=MarketStatus.RESOLVED,
        resolution=resolution,
        resolved_at=now,
        settlement_pending=True,
    )


def cancel(market: Market, reason: str | None, now: datetime) -> Market:
    if market.is_terminal:
        raise MarketAlreadyTerminalError(market.id, market.status.value)
    cleaned = (reason or "").strip()[:MAX_CANCELLATION_REASON] or None
    return replace(
        market,
        status=MarketStatus.CANCELLED,
        cancelled_at=now,
        cancellation_reason=cleaned,
        locked_at=None,
        settlement_pending=True,
    )


def is_resumable(market: Market, status: MarketStatus, resolution: Side | None = None) -> bool:
    """A terminal market whose bulk settlement was interrupted may be re-driven."""
    return (
        market.status == status
        and market.settlement_pending
        and market.resolution == resolution
    )
