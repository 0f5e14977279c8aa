from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

FULL_DAY_SHIFT = "plantao_24h"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today(now: Optional[datetime] = None) -> date:
    return (now or utcnow()).date()


def iso(value: datetime | date | None) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_date(value: str | date | None) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def shift_duration(start_time: str, end_time: str) -> timedelta:
    """Length of a shift given ``HH:MM`` bounds.

    An end at or before the start wraps past midnight, so ``19:00 -> 07:00``
    is twelve hours. Identical bounds are a full day.
    """
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    start_delta = timedelta(hours=start.hour, minutes=start.minute)
    end_delta = timedelta(hours=end.hour, minutes=end.minute)
    if end_delta <= start_delta:
        end_delta += timedelta(days=1)
    return end_delta - start_delta


def days_until(day: date | str, now: Optional[datetime] = None) -> int:
    return (parse_date(day) - today(now)).days
