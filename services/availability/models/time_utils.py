"""
Wall-clock helpers shared by the availability models and engine.

Times of day are handled as integer minutes since midnight so range
intersection and overlap checks stay simple integer comparisons.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")

MINUTES_PER_DAY = 24 * 60


def parse_time_of_day(value: str) -> int:
    """
    Parse an ``HH:MM`` string into minutes since midnight.

    ``24:00`` is accepted as the end of the day. Anything else outside
    00:00-23:59 raises ValueError.

    >>> parse_time_of_day("09:30")
    570
    """
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if (hour, minute) == (24, 0):
        return MINUTES_PER_DAY
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time must be between 00:00 and 23:59, got {value!r}")
    return hour * 60 + minute


def format_time_of_day(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def ranges_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open interval overlap test: ``[start1, end1)`` vs ``[start2, end2)``."""
    return start1 < end2 and end1 > start2


def datetimes_overlap(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    return start1 < end2 and end1 > start2


def weekday_index(day: date) -> int:
    """Day of week with 0 = Sunday through 6 = Saturday."""
    return (day.weekday() + 1) % 7


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each calendar day in ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def iter_increments(start: int, end: int, step: int) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` minute ranges of ``step`` that fit inside ``[start, end)``."""
    if step <= 0:
        raise ValueError("Slot duration must be positive")
    current = start
    while current + step <= end:
        yield current, current + step
        current += step


def load_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone {name!r}") from e


def local_datetime(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    """Aware UTC datetime for a wall-clock time (minutes after midnight) on ``day``."""
    naive = datetime.combine(day, time()) + timedelta(minutes=minutes)
    return naive.replace(tzinfo=zone).astimezone(timezone.utc)


def existing_local_datetime(day: date, minutes: int, zone: ZoneInfo) -> Optional[datetime]:
    """
    Like ``local_datetime``, but None when the wall-clock time falls in a DST gap.

    Ambiguous times (the repeated hour when clocks go back) resolve to their
    first occurrence.
    """
    naive = datetime.combine(day, time()) + timedelta(minutes=minutes)
    moment = naive.replace(tzinfo=zone).astimezone(timezone.utc)
    if moment.astimezone(zone).replace(tzinfo=None) != naive:
        return None
    return moment


def minutes_of_day(moment: datetime, zone: ZoneInfo) -> int:
    local = moment.astimezone(zone)
    return local.hour * 60 + local.minute


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
