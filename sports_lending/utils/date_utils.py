"""Date manipulation utilities and the injectable clock"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_minutes(from_time: datetime, minutes: int) -> datetime:
    return from_time + timedelta(minutes=minutes)


def subtract_months(from_time: datetime, months: int) -> datetime:
    """Go back a number of calendar months, clamping the day to the target month"""
    month_index = from_time.year * 12 + (from_time.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return from_time.replace(year=year, month=month, day=min(from_time.day, last_day))


class Clock:
    """Source of the current time for all lifecycle rules"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant until explicitly moved"""

    def __init__(self, current: datetime):
        self.current = ensure_utc(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current
