"""Admin audit log record."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import AdminAction
from src.pm_common.id_generator import generate_id


@dataclass(frozen=True)
class AdminLogEntry:
    id: str
    action: AdminAction
    detail: str
    actor: str
    created_at: datetime

    @classmethod
    def new(cls, action: AdminAction, detail: str, actor: str, now: datetime) -> "AdminLogEntry":
        return cls(id=generate_id("log"), action=action, detail=detail, actor=actor, created_at=now)
