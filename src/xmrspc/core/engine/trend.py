"""Trend-adjusted (sloped) limits for metrics with a deliberate direction.

A least-squares line is fitted to value against position (0-based index) and
the natural process limits are drawn parallel to it. The band width comes
from the average moving range of the *un-trended* series, so removing the
trend never feeds back into the variance estimate used to draw its own band.
"""

from dataclasses import dataclass
from typing import Sequence

import structlog

from xmrspc.core.engine.limits import compute_limits
from xmrspc.core.engine.points import DataPoint, point_values
from xmrspc.utils.constants import NPL_FACTOR
from xmrspc.utils.statistics import least_squares_line

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegressionStats:
    """Least-squares fit of value against index.

    Attributes:
        m: Slope (change in value per point)
        c: Intercept (fitted value at index 0)
        r_squared: Coefficient of determination of the fit
    """
    m: float
    c: float
    r_squared: float


@dataclass(frozen=True)
class TrendStats:
    """Everything needed to draw trend lines.

    Attributes:
        m: Slope of the center line
        c: Intercept of the center line
        avg_movement: Average moving range of the un-trended series
    """
    m: float
    c: float
    avg_movement: float


@dataclass(frozen=True)
class TrendLimits:
    """Index-aligned sloped limits.

    Attributes:
        center: Fitted center line per index
        upper: Upper natural process limit per index
        lower: Lower natural process limit per index
        upper_quartile: Midpoint between center and upper per index
        lower_quartile: Midpoint between center and lower per index
    """
    center: tuple[float, ...]
    upper: tuple[float, ...]
    lower: tuple[float, ...]
    upper_quartile: tuple[float, ...]
    lower_quartile: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.center)


def regress(points: Sequence[DataPoint]) -> RegressionStats | None:
    """Fit an ordinary least-squares line to the values against their index.

    Args:
        points: Clean, chronologically sorted data points

    Returns:
        RegressionStats, or None when fewer than two points are supplied

    Examples:
        For values [100, 105, 110, 115]: m = 5.0, c = 100.0, r_squared = 1.0
    """
    if len(points) < 2:
        return None

    m, c, r_squared = least_squares_line(point_values(points))
    return RegressionStats(m=m, c=c, r_squared=r_squared)


def trend_stats_for(points: Sequence[DataPoint], use_median: bool = False) -> TrendStats | None:
    """Regress the series and pair the fit with its un-trended average movement.

    Returns:
        TrendStats, or None when fewer than two points are supplied
    """
    fit = regress(points)
    if fit is None:
        return None

    avg_movement = compute_limits(points, use_median).limits.avg_movement
    logger.debug("trend_fitted", m=fit.m, c=fit.c, r_squared=fit.r_squared)
    return TrendStats(m=fit.m, c=fit.c, avg_movement=avg_movement)


def build_trend_lines(stats: TrendStats, points: Sequence[DataPoint]) -> TrendLimits:
    """Evaluate the trend line and its limits at every index of *points*.

    Args:
        stats: Slope, intercept and un-trended average moving range
        points: Points the lines are drawn for (only their count is used)

    Returns:
        TrendLimits aligned with *points*
    """
    offset = NPL_FACTOR * stats.avg_movement
    center = tuple(stats.m * i + stats.c for i in range(len(points)))
    upper = tuple(value + offset for value in center)
    lower = tuple(value - offset for value in center)

    return TrendLimits(
        center=center,
        upper=upper,
        lower=lower,
        upper_quartile=tuple((mid + hi) / 2 for mid, hi in zip(center, upper)),
        lower_quartile=tuple((mid + lo) / 2 for mid, lo in zip(center, lower)),
    )


def detrend(points: Sequence[DataPoint], stats: TrendStats | RegressionStats) -> list[DataPoint]:
    """Return copies of *points* holding their residuals from the trend line."""
    return [
        point.with_value(point.value - (stats.m * i + stats.c))
        for i, point in enumerate(points)
    ]
