"""UTC clock helpers shared by the document stores."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """Format as ISO-8601 UTC with milliseconds, e.g. 2024-01-01T09:30:00.000Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def date_key(moment: datetime, offset_days: int = 0) -> str:
    """UTC calendar date of `moment` shifted by `offset_days`, as YYYY-MM-DD."""
    day = moment.astimezone(timezone.utc).date() + timedelta(days=offset_days)
    return day.isoformat()
