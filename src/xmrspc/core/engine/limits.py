"""Natural process limit calculation for XmR charts.

This module turns a chronologically sorted sequence of data points into the
seven statistics that define an Individuals / Moving Range chart:

- avg_x: center line of the X chart (mean or median of values)
- unpl / lnpl: upper and lower natural process limits (avg_x ± 2.66 · MR-bar)
- avg_movement: center line of the mR chart (mean or median moving range)
- url: upper range limit of the mR chart (3.267 · MR-bar)
- upper_quartile / lower_quartile: midpoints between center and each limit

Sparse input never raises: fewer than two points produce zero-width limits
so that a partially rendered chart is still possible.
"""

from dataclasses import dataclass, replace
from typing import Sequence

from xmrspc.core.engine.points import DataPoint, point_values
from xmrspc.core.exceptions import InvalidLimitsError
from xmrspc.utils.constants import NPL_FACTOR, URL_FACTOR
from xmrspc.utils.statistics import central_tendency, moving_ranges


@dataclass(frozen=True)
class XMRLimits:
    """Limits for an XmR chart.

    Attributes:
        avg_x: Center line of the individuals chart
        unpl: Upper natural process limit
        lnpl: Lower natural process limit
        avg_movement: Average (or median) moving range
        url: Upper range limit for the moving range chart
        lower_quartile: Midpoint between avg_x and lnpl
        upper_quartile: Midpoint between avg_x and unpl
    """
    avg_x: float
    unpl: float
    lnpl: float
    avg_movement: float
    url: float
    lower_quartile: float
    upper_quartile: float

    @property
    def sigma(self) -> float:
        """One sigma of routine variation, a third of the distance to UNPL."""
        return (self.unpl - self.avg_x) / 3


@dataclass(frozen=True)
class XmrPoint:
    """A data point augmented with its chart position and moving range.

    Attributes:
        index: Position in the sequence the limits were computed from
        timestamp: Original timestamp string
        value: Measured value
        moving_range: Absolute difference from the previous value (None for the first)
        confidence: Confidence carried over from the source point
    """
    index: int
    timestamp: str
    value: float
    moving_range: float | None
    confidence: float | None = None


@dataclass(frozen=True)
class LimitsResult:
    """Result of a limit calculation.

    Attributes:
        limits: Computed natural process limits
        points: Input points augmented with index and moving range
    """
    limits: XMRLimits
    points: list[XmrPoint]


@dataclass(frozen=True)
class LimitOverrides:
    """Manually entered replacements for individual limit statistics.

    Any attribute left as None keeps the computed value.
    """
    avg_x: float | None = None
    unpl: float | None = None
    lnpl: float | None = None
    avg_movement: float | None = None
    url: float | None = None


def limits_from_values(avg_x: float, avg_movement: float) -> XMRLimits:
    """Build XmR limits from the center line and average moving range.

    Args:
        avg_x: Center line of the individuals chart
        avg_movement: Average moving range (must not be negative)

    Returns:
        XMRLimits with natural process limits, URL and quartiles

    Examples:
        >>> limits = limits_from_values(10.0, 1.0)
        >>> limits.unpl, limits.lnpl, limits.url
        (12.66, 7.34, 3.267)
    """
    unpl = avg_x + NPL_FACTOR * avg_movement
    lnpl = avg_x - NPL_FACTOR * avg_movement
    return XMRLimits(
        avg_x=avg_x,
        unpl=unpl,
        lnpl=lnpl,
        avg_movement=avg_movement,
        url=URL_FACTOR * avg_movement,
        lower_quartile=(avg_x + lnpl) / 2,
        upper_quartile=(avg_x + unpl) / 2,
    )


def compute_limits(points: Sequence[DataPoint], use_median: bool = False) -> LimitsResult:
    """Calculate natural process limits for a sequence of points.

    Args:
        points: Clean, chronologically sorted data points (never mutated)
        use_median: Use the median of values and moving ranges instead of the mean

    Returns:
        LimitsResult with limits and the augmented points

    Raises:
        InvalidDataPointError: If any value is NaN or infinite

    Example:
        For values [10, 12, 11, 13, 10]:
        - avg_x = 11.2
        - moving ranges = [2, 1, 2, 3], avg_movement = 2.0
        - UNPL = 16.52, LNPL = 5.88, URL = 6.534
    """
    values = point_values(points)
    ranges = moving_ranges(values)

    avg_x = central_tendency(values, use_median)
    avg_movement = central_tendency(ranges, use_median)

    augmented = [
        XmrPoint(
            index=i,
            timestamp=point.timestamp,
            value=values[i],
            moving_range=ranges[i - 1] if i > 0 else None,
            confidence=point.confidence,
        )
        for i, point in enumerate(points)
    ]

    return LimitsResult(limits=limits_from_values(avg_x, avg_movement), points=augmented)


def validate_limits(limits: XMRLimits) -> None:
    """Check the ordering invariants of a limits record.

    Raises:
        InvalidLimitsError: If avg_x lies outside [lnpl, unpl], avg_movement is
            negative, or avg_movement exceeds url
    """
    if not limits.lnpl <= limits.avg_x <= limits.unpl:
        raise InvalidLimitsError(
            f"Average X must be between LNPL and UNPL "
            f"(avg_x={limits.avg_x}, lnpl={limits.lnpl}, unpl={limits.unpl})"
        )
    if limits.avg_movement < 0:
        raise InvalidLimitsError(f"Average movement cannot be negative, got {limits.avg_movement}")
    if limits.avg_movement > limits.url:
        raise InvalidLimitsError(
            f"Average movement must not exceed URL "
            f"(avg_movement={limits.avg_movement}, url={limits.url})"
        )


def override_limits(limits: XMRLimits, overrides: LimitOverrides) -> XMRLimits:
    """Apply manual overrides to computed limits and re-derive the quartiles.

    Args:
        limits: Computed limits to start from
        overrides: Statistics to replace

    Returns:
        New XMRLimits with overrides applied

    Raises:
        InvalidLimitsError: If the result violates the limit invariants
    """
    updates = {
        name: value
        for name, value in vars(overrides).items()
        if value is not None
    }
    merged = replace(limits, **updates)
    merged = replace(
        merged,
        lower_quartile=(merged.avg_x + merged.lnpl) / 2,
        upper_quartile=(merged.avg_x + merged.unpl) / 2,
    )
    validate_limits(merged)
    return merged
