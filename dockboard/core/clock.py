"""Facility-local day boundaries."""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dockboard.config import settings


def facility_tz(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or settings.FACILITY_TIMEZONE)


def day_bounds(day: date, tz: Optional[ZoneInfo] = None) -> Tuple[datetime, datetime]:
    """Return (00:00:00, 23:59:59) of a facility-local day, in UTC."""
    tz = tz or facility_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time(23, 59, 59), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_today(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    tz = tz or facility_tz()
    now = now or datetime.now(timezone.utc)
    return now.astimezone(tz).date()


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(hours=1)
