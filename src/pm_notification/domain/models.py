"""Notification records emitted by settlement and stipend runs."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import NotificationCategory, NotificationType
from src.pm_common.id_generator import generate_id


def category_for_type(kind: NotificationType) -> NotificationCategory:
    if kind in (NotificationType.PAYOUT, NotificationType.LOSS, NotificationType.REFUND):
        return NotificationCategory.MARKET_RESOLVED
    return NotificationCategory.RANK_CHANGED


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    category: NotificationCategory
    amount: float
    message: str | None
    market_id: str | None
    market_question: str | None
    resolution: str | None
    read: bool
    created_at: datetime

    @classmethod
    def new(
        cls,
        user_id: str,
        kind: NotificationType,
        amount: float,
        now: datetime,
        message: str | None = None,
        market_id: str | None = None,
        market_question: str | None = None,
        resolution: str | None = None,
    ) -> "Notification":
        return cls(
            id=generate_id("ntf"),
            user_id=user_id,
            type=kind,
            category=category_for_type(kind),
            amount=amount,
            message=message,
            market_id=market_id,
            market_question=market_question,
            resolution=resolution,
            read=False,
            created_at=now,
        )
