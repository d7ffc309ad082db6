"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def older_than(moment: datetime | None, days: int, now: datetime | None = None) -> bool:
    """True when `moment` is unset or at least `days` before `now`."""
    if moment is None:
        return True
    reference = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return reference - moment >= timedelta(days=days)
