"""Timestamp parsing and time bucket normalization.

Metric timestamps arrive as strings in one of three shapes:
- ``YYYYMM`` (monthly metrics, e.g. "202401")
- ``YYYYMMDD`` (daily metrics, e.g. "20240115")
- ISO 8601 dates or datetimes (e.g. "2024-01-15", "2024-01-15T08:00:00Z")

All parsed values are timezone-aware UTC datetimes so that deltas between
points never mix naive and aware values.
"""

import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Sequence

_YYYYMM = re.compile(r"^\d{6}$")
_YYYYMMDD = re.compile(r"^\d{8}$")


class TimeBucket(str, Enum):
    """Granularity of a metric's time axis."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def parse_timestamp(timestamp: str) -> datetime:
    """Parse a metric timestamp into a UTC datetime.

    Args:
        timestamp: ``YYYYMM``, ``YYYYMMDD`` or ISO 8601 string

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the string cannot be parsed

    Examples:
        >>> parse_timestamp("202403")
        datetime.datetime(2024, 3, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    text = timestamp.strip()

    if _YYYYMM.match(text):
        return datetime(int(text[:4]), int(text[4:6]), 1, tzinfo=timezone.utc)

    if _YYYYMMDD.match(text):
        return datetime(int(text[:4]), int(text[4:6]), int(text[6:8]), tzinfo=timezone.utc)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Unparseable timestamp: {timestamp!r}") from None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_parseable(timestamp: str) -> bool:
    """Return True if *timestamp* can be parsed by parse_timestamp()."""
    try:
        parse_timestamp(timestamp)
    except (TypeError, ValueError, AttributeError):
        return False
    return True


def bucket_start(moment: datetime, bucket: TimeBucket) -> datetime:
    """Return the start of the bucket containing *moment* (UTC midnight).

    Weeks start on Monday (ISO weeks).
    """
    day = datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)

    if bucket == TimeBucket.DAY:
        return day
    if bucket == TimeBucket.WEEK:
        return day - timedelta(days=day.weekday())
    if bucket == TimeBucket.MONTH:
        return day.replace(day=1)
    if bucket == TimeBucket.QUARTER:
        quarter_month = 3 * ((day.month - 1) // 3) + 1
        return day.replace(month=quarter_month, day=1)
    if bucket == TimeBucket.YEAR:
        return day.replace(month=1, day=1)

    raise ValueError(f"Unknown bucket type: {bucket}")


def day_deltas(timestamps: Sequence[str]) -> list[int]:
    """Whole-day gaps between consecutive timestamps (rounded up)."""
    parsed = [parse_timestamp(ts) for ts in timestamps]
    return [
        math.ceil(abs((later - earlier).total_seconds()) / 86400)
        for earlier, later in zip(parsed, parsed[1:])
    ]


def bucket_for_interval(days: int) -> TimeBucket:
    """Map a typical gap between points (in days) to a time bucket."""
    if days < 7:
        return TimeBucket.DAY
    elif days < 28:
        return TimeBucket.WEEK
    elif days < 90:
        return TimeBucket.MONTH
    elif days < 365:
        return TimeBucket.QUARTER
    else:
        return TimeBucket.YEAR


def detect_bucket_type(timestamps: Sequence[str]) -> TimeBucket:
    """Detect the granularity of a timestamp series from its modal gap.

    The most common whole-day delta between consecutive timestamps decides
    the bucket. When several deltas are equally common the larger delta wins.
    Fewer than two timestamps are treated as daily data.

    Args:
        timestamps: Chronologically sorted timestamp strings

    Returns:
        Detected TimeBucket
    """
    if len(timestamps) < 2:
        return TimeBucket.DAY

    counts = Counter(day_deltas(timestamps))
    modal_delta = max(counts, key=lambda delta: (counts[delta], delta))
    return bucket_for_interval(modal_delta)
