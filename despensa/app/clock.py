from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from despensa.app.config import store_timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def store_date(moment: datetime) -> date:
    """Calendar date of a timestamp as seen by the store's register."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(ZoneInfo(store_timezone())).date()


def store_today() -> date:
    return store_date(utcnow())
