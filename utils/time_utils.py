from datetime import datetime, timedelta, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Returns the current time in UTC, timezone aware."""
    return datetime.now(timezone.utc)


def hours_after(start: datetime, hours: Union[int, float]) -> datetime:
    """Offset `start` by a number of hours."""
    return start + timedelta(hours=hours)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treats naive datetimes as UTC so they compare with aware ones."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)

