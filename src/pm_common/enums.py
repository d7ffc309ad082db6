"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class Side(str, Enum):
    YES = "YES"
    NO = "NO"


class EntryType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class SettlementKind(str, Enum):
    """Per-(market, user) idempotency marker written by bulk settlement."""
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"


class NotificationType(str, Enum):
    PAYOUT = "payout"
    LOSS = "loss"
    REFUND = "refund"
    STIPEND = "stipend"


class NotificationCategory(str, Enum):
    MARKET_RESOLVED = "MARKET_RESOLVED"
    RANK_CHANGED = "RANK_CHANGED"


class AdminAction(str, Enum):
    CREATE = "CREATE"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"
    RESOLVE = "RESOLVE"
    CANCEL = "CANCEL"
    REFUND = "REFUND"
    STIPEND_INJECT = "STIPEND_INJECT"
