"""Seasonal decomposition for XmR charts.

Seasonal factors describe how each phase of the calendar year typically
compares with the year as a whole. Dividing values by their phase factor
removes that repeating pattern, so the limits computed afterwards reflect
non-seasonal variation only.

The period names the size of one phase slot and follows the granularity of
the data: monthly data has twelve month-of-year phases, quarterly data four
quarter-of-year phases, weekly data 53 ISO-week phases. Daily data has no
usable seasonal period.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

import structlog

from xmrspc.core.engine.points import DataPoint, point_values
from xmrspc.core.exceptions import SeasonalFactorMismatchError, SeasonalityError
from xmrspc.utils.statistics import central_tendency
from xmrspc.utils.timestamps import TimeBucket, bucket_start, detect_bucket_type

logger = structlog.get_logger(__name__)

Period = TimeBucket

SLOTS_PER_CYCLE: dict[TimeBucket, int] = {
    TimeBucket.WEEK: 53,
    TimeBucket.MONTH: 12,
    TimeBucket.QUARTER: 4,
    TimeBucket.YEAR: 1,
}


class SeasonalityGrouping(str, Enum):
    """Optional subdivision of each phase slot.

    NONE keeps one factor per slot. HALVES splits every slot at the midpoint
    of its calendar span, giving separate factors for the first and second
    half of each week, month, quarter or year.
    """
    NONE = "none"
    HALVES = "halves"

    @property
    def subdivisions(self) -> int:
        return 2 if self is SeasonalityGrouping.HALVES else 1


@dataclass(frozen=True)
class SeasonalProfile:
    """Multiplicative seasonal factors for one period/grouping.

    Attributes:
        period: Size of one phase slot
        grouping: Subdivision applied to each slot
        factors: One factor per phase, in phase order
    """
    period: Period
    grouping: SeasonalityGrouping
    factors: tuple[float, ...]


def is_seasonal_period(period: Period) -> bool:
    """True if seasonal factors can be computed for *period*."""
    return period in SLOTS_PER_CYCLE


def phase_count(period: Period, grouping: SeasonalityGrouping = SeasonalityGrouping.NONE) -> int:
    """Number of factors a profile for this period and grouping carries.

    Raises:
        SeasonalityError: If the period has no seasonal cycle
    """
    if not is_seasonal_period(period):
        raise SeasonalityError(f"Period {period.value!r} has no usable seasonal cycle")
    return SLOTS_PER_CYCLE[period] * grouping.subdivisions


def _slot_end(start: datetime, period: Period) -> datetime:
    if period == TimeBucket.WEEK:
        return start + timedelta(days=7)
    if period == TimeBucket.YEAR:
        return start.replace(year=start.year + 1)

    months = 1 if period == TimeBucket.MONTH else 3
    month_index = start.month - 1 + months
    return start.replace(year=start.year + month_index // 12, month=month_index % 12 + 1)


def _slot_of(moment: datetime, period: Period) -> int:
    if period == TimeBucket.WEEK:
        return moment.isocalendar()[1] - 1
    if period == TimeBucket.MONTH:
        return moment.month - 1
    if period == TimeBucket.QUARTER:
        return (moment.month - 1) // 3
    return 0


def phase_index(
    moment: datetime,
    period: Period,
    grouping: SeasonalityGrouping = SeasonalityGrouping.NONE,
) -> int:
    """Position of *moment* within the seasonal cycle.

    Args:
        moment: UTC datetime of the point
        period: Size of one phase slot
        grouping: Subdivision applied to each slot

    Returns:
        Phase index in ``range(phase_count(period, grouping))``
    """
    slot = _slot_of(moment, period)
    if grouping.subdivisions == 1:
        return slot

    start = bucket_start(moment, period)
    span = (_slot_end(start, period) - start).total_seconds()
    elapsed = (moment - start).total_seconds()
    sub = min(int(grouping.subdivisions * elapsed / span), grouping.subdivisions - 1)
    return slot * grouping.subdivisions + sub


def determine_periodicity(points: Sequence[DataPoint]) -> Period:
    """Detect the period from the modal gap between consecutive points.

    Returns:
        Detected period; DAY (not seasonal) for fewer than two points or
        gaps under a week
    """
    return detect_bucket_type([p.timestamp for p in points])


def compute_seasonal_factors(
    points: Sequence[DataPoint],
    period: Period,
    grouping: SeasonalityGrouping = SeasonalityGrouping.NONE,
) -> SeasonalProfile:
    """Average value per phase, normalised against the global average.

    Phases with no data, a zero phase average, or a zero global average get a
    neutral factor of 1.0.

    Args:
        points: Clean, chronologically sorted data points
        period: Size of one phase slot
        grouping: Subdivision applied to each slot

    Returns:
        SeasonalProfile with one factor per phase

    Raises:
        SeasonalityError: If the period has no seasonal cycle
    """
    count = phase_count(period, grouping)
    values = point_values(points)
    by_phase: list[list[float]] = [[] for _ in range(count)]
    for point, value in zip(points, values):
        by_phase[phase_index(point.moment, period, grouping)].append(value)

    global_mean = central_tendency(values)
    if global_mean == 0.0:
        if values:
            logger.warning("seasonal_factors_neutral", reason="zero global mean", points=len(values))
        return SeasonalProfile(period=period, grouping=grouping, factors=(1.0,) * count)

    factors = []
    for phase_values in by_phase:
        phase_mean = central_tendency(phase_values)
        factors.append(phase_mean / global_mean if phase_values and phase_mean != 0.0 else 1.0)

    logger.debug(
        "seasonal_factors_computed",
        period=period.value,
        grouping=grouping.value,
        empty_phases=sum(1 for v in by_phase if not v),
    )
    return SeasonalProfile(period=period, grouping=grouping, factors=tuple(factors))


def _checked_factors(
    factors: Sequence[float],
    grouping: SeasonalityGrouping,
    period: Period,
) -> Sequence[float]:
    expected = phase_count(period, grouping)
    if len(factors) != expected:
        raise SeasonalFactorMismatchError(expected=expected, actual=len(factors))
    if any(f == 0 or not math.isfinite(f) for f in factors):
        raise SeasonalityError("Seasonal factors must be finite and non-zero")
    return factors


def apply_factors(
    points: Sequence[DataPoint],
    factors: Sequence[float],
    grouping: SeasonalityGrouping,
    period: Period,
) -> list[DataPoint]:
    """Deseasonalise: divide each value by the factor of its phase.

    Args:
        points: Clean, chronologically sorted data points (never mutated)
        factors: One factor per phase, as produced by compute_seasonal_factors()
        grouping: Grouping the factors were computed with
        period: Period the factors were computed with

    Returns:
        New list of points carrying deseasonalised values

    Raises:
        SeasonalFactorMismatchError: If the factor count does not match the
            phase count of period and grouping
        SeasonalityError: If the period has no seasonal cycle or a factor is
            zero or not finite
    """
    checked = _checked_factors(factors, grouping, period)
    return [
        point.with_value(point.value / checked[phase_index(point.moment, period, grouping)])
        for point in points
    ]


def reseasonalize(
    points: Sequence[DataPoint],
    factors: Sequence[float],
    grouping: SeasonalityGrouping,
    period: Period,
) -> list[DataPoint]:
    """Inverse of apply_factors(): multiply each value by its phase factor."""
    checked = _checked_factors(factors, grouping, period)
    return [
        point.with_value(point.value * checked[phase_index(point.moment, period, grouping)])
        for point in points
    ]
