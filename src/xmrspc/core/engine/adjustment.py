"""Adjustment modes for an XmR chart.

A chart is drawn in exactly one mode at a time: plain limits, locked limits,
trend-adjusted limits, or seasonally adjusted limits. AdjustmentMode is a
tagged union, so two modes can never be active together.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union

import structlog

from xmrspc.core.engine.limits import XMRLimits
from xmrspc.core.engine.outlier_lock import (
    LockResult,
    lock_with_outlier_removal,
    should_auto_lock,
)
from xmrspc.core.engine.points import DataPoint
from xmrspc.core.engine.seasonal import (
    SeasonalProfile,
    SeasonalityGrouping,
    compute_seasonal_factors,
    determine_periodicity,
    is_seasonal_period,
)
from xmrspc.core.engine.trend import RegressionStats, TrendStats, regress
from xmrspc.core.exceptions import AdjustmentConflictError
from xmrspc.utils.constants import (
    AUTO_LOCK_MAX_OUTLIER_FRACTION,
    MAX_LOCK_ITERATIONS,
    MINIMUM_POINTS,
    MIN_RETAINED_POINTS,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NoAdjustment:
    """Plain limits computed from every point."""


@dataclass(frozen=True)
class LockedAdjustment:
    """Limits fixed from a subset of points.

    Attributes:
        limits: Locked limits
        excluded_indices: Points left out of the calculation
        auto: True if the lock was applied automatically on load
    """
    limits: XMRLimits
    excluded_indices: tuple[int, ...] = ()
    auto: bool = False


@dataclass(frozen=True)
class TrendAdjustment:
    """Sloped limits along the line ``m * index + c``."""
    m: float
    c: float


@dataclass(frozen=True)
class SeasonalAdjustment:
    """Limits computed from deseasonalised values."""
    profile: SeasonalProfile


AdjustmentMode = Union[NoAdjustment, LockedAdjustment, TrendAdjustment, SeasonalAdjustment]


class PreferredAdjustment(str, Enum):
    """Adjustment a metric asks for when its chart is first loaded."""
    NONE = "none"
    TREND = "trend"
    SEASONALITY = "seasonality"


def select_adjustment(
    trend: TrendStats | RegressionStats | None = None,
    seasonal: SeasonalProfile | None = None,
    locked: LockResult | None = None,
) -> AdjustmentMode:
    """Build the adjustment mode from at most one active adjustment.

    Raises:
        AdjustmentConflictError: If more than one adjustment is supplied
    """
    supplied = [
        name for name, value in (("trend", trend), ("seasonal", seasonal), ("locked", locked))
        if value is not None
    ]
    if len(supplied) > 1:
        raise AdjustmentConflictError(
            f"Only one adjustment can be active at a time, got: {', '.join(supplied)}"
        )

    if trend is not None:
        return TrendAdjustment(m=trend.m, c=trend.c)
    if seasonal is not None:
        return SeasonalAdjustment(profile=seasonal)
    if locked is not None:
        return LockedAdjustment(limits=locked.limits, excluded_indices=locked.outlier_indices)
    return NoAdjustment()


def preferred_adjustment_from_label(name: str) -> PreferredAdjustment:
    """Read the preferred adjustment from a legacy metric label.

    Older metrics encode their preference as a "(Trend)" or "(Seasonality)"
    suffix in the label. Matching is case-insensitive.

    Raises:
        AdjustmentConflictError: If the label asks for both
    """
    lowered = name.lower()
    wants_trend = "(trend)" in lowered
    wants_seasonality = "(seasonality)" in lowered

    if wants_trend and wants_seasonality:
        raise AdjustmentConflictError(f"Label requests both trend and seasonality: {name!r}")
    if wants_trend:
        return PreferredAdjustment.TREND
    if wants_seasonality:
        return PreferredAdjustment.SEASONALITY
    return PreferredAdjustment.NONE


def resolve_preferred(
    preferred: PreferredAdjustment | None,
    label: str | None = None,
) -> PreferredAdjustment:
    """Explicit preference wins; the label is only consulted when it is unset."""
    if preferred is not None:
        return preferred
    if label:
        return preferred_adjustment_from_label(label)
    return PreferredAdjustment.NONE


def auto_adjustment(
    points: Sequence[DataPoint],
    preferred: PreferredAdjustment = PreferredAdjustment.NONE,
    min_points: int = MINIMUM_POINTS,
    grouping: SeasonalityGrouping = SeasonalityGrouping.NONE,
    max_outlier_fraction: float = AUTO_LOCK_MAX_OUTLIER_FRACTION,
    max_iterations: int = MAX_LOCK_ITERATIONS,
    min_retained: int = MIN_RETAINED_POINTS,
) -> AdjustmentMode:
    """Choose the adjustment applied when a chart is first loaded.

    A preferred trend is applied whenever a line can be fitted. A preferred
    seasonality is applied when there are enough points and the data has a
    seasonal period. A metric that prefers either is never locked
    automatically: when its preference cannot be applied it renders plain.
    Without a preference the limits are locked automatically if a few
    outliers distort an otherwise stable series.

    Args:
        points: Clean, chronologically sorted data points
        preferred: Adjustment the metric asks for
        min_points: Fewest points for seasonality and auto-lock
        grouping: Seasonal grouping to use for a preferred seasonality
        max_outlier_fraction: Largest outlier share that still auto-locks
        max_iterations: Cap on lock recomputation passes
        min_retained: Fewest points a lock must keep

    Returns:
        The adjustment mode to render with
    """
    if preferred == PreferredAdjustment.TREND:
        fit = regress(points)
        if fit is not None:
            return TrendAdjustment(m=fit.m, c=fit.c)
        logger.debug("trend_skipped", points=len(points))
        return NoAdjustment()

    if preferred == PreferredAdjustment.SEASONALITY:
        period = determine_periodicity(points)
        if len(points) >= min_points and is_seasonal_period(period):
            return SeasonalAdjustment(profile=compute_seasonal_factors(points, period, grouping))
        logger.debug("seasonality_skipped", period=period.value, points=len(points))
        return NoAdjustment()

    if should_auto_lock(points, min_points, max_outlier_fraction):
        result = lock_with_outlier_removal(
            points, max_iterations=max_iterations, min_retained=min_retained
        )
        logger.debug("auto_locked", excluded=list(result.outlier_indices))
        return LockedAdjustment(
            limits=result.limits,
            excluded_indices=result.outlier_indices,
            auto=True,
        )

    return NoAdjustment()
