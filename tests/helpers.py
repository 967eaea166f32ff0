"""Series builders shared by the unit tests."""

from datetime import date, timedelta
from typing import Sequence

from xmrspc.core.engine.points import DataPoint


def monthly_timestamps(count: int, start_year: int = 2024, start_month: int = 1) -> list[str]:
    """Consecutive first-of-month ISO dates."""
    stamps = []
    for offset in range(count):
        month_index = start_month - 1 + offset
        stamps.append(f"{start_year + month_index // 12:04d}-{month_index % 12 + 1:02d}-01")
    return stamps


def daily_timestamps(count: int, start: date = date(2024, 1, 1), step_days: int = 1) -> list[str]:
    """ISO dates *step_days* apart."""
    return [(start + timedelta(days=step_days * i)).isoformat() for i in range(count)]


def make_points(values: Sequence[float], timestamps: Sequence[str] | None = None) -> list[DataPoint]:
    """Build DataPoints for *values*, monthly from January 2024 by default."""
    if timestamps is None:
        timestamps = monthly_timestamps(len(values))
    return [DataPoint(timestamp=ts, value=v) for ts, v in zip(timestamps, values)]
