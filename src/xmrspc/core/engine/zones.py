"""Zone classification for XmR chart points.

Each point is classified relative to the boundaries that apply at its index:
flat limits for an ordinary chart, or the index-aligned trend lines for a
trended chart. Zones are defined from the center line outwards:

- Inner:  strictly within one sigma of center
- Middle: between one sigma and the quartile (inclusive)
- Outer:  strictly beyond the quartile, up to and including the limit
- Beyond: strictly beyond UNPL / LNPL

A value equal to a limit is never beyond it.
"""

import math
from dataclasses import dataclass
from enum import Enum

from xmrspc.core.engine.limits import XMRLimits
from xmrspc.core.engine.trend import TrendLimits
from xmrspc.utils.constants import CENTER_LINE_TOLERANCE, CENTER_LINE_ULPS


class Zone(Enum):
    """Zone classification for XmR chart points."""
    BEYOND_UNPL = "beyond_unpl"    # > UNPL
    UPPER_OUTER = "upper_outer"    # > upper quartile
    UPPER_MIDDLE = "upper_middle"  # 1σ to upper quartile
    UPPER_INNER = "upper_inner"    # 0-1σ above
    CENTER = "center"              # on the center line
    LOWER_INNER = "lower_inner"    # 0-1σ below
    LOWER_MIDDLE = "lower_middle"  # 1σ to lower quartile
    LOWER_OUTER = "lower_outer"    # < lower quartile
    BEYOND_LNPL = "beyond_lnpl"    # < LNPL


UPPER_ZONES = frozenset({Zone.UPPER_INNER, Zone.UPPER_MIDDLE, Zone.UPPER_OUTER, Zone.BEYOND_UNPL})
LOWER_ZONES = frozenset({Zone.LOWER_INNER, Zone.LOWER_MIDDLE, Zone.LOWER_OUTER, Zone.BEYOND_LNPL})
NEAR_UPPER_LIMIT = frozenset({Zone.UPPER_OUTER, Zone.BEYOND_UNPL})
NEAR_LOWER_LIMIT = frozenset({Zone.LOWER_OUTER, Zone.BEYOND_LNPL})
WITHIN_ONE_SIGMA = frozenset({Zone.UPPER_INNER, Zone.CENTER, Zone.LOWER_INNER})


@dataclass(frozen=True)
class ZoneBoundaries:
    """Boundaries that apply to a single chart position.

    Attributes:
        center_line: Center line at this position
        unpl: Upper natural process limit at this position
        lnpl: Lower natural process limit at this position
        upper_quartile: Midpoint between center and UNPL
        lower_quartile: Midpoint between center and LNPL
        sigma: One sigma of routine variation
    """
    center_line: float
    unpl: float
    lnpl: float
    upper_quartile: float
    lower_quartile: float
    sigma: float

    def is_on_center(self, value: float) -> bool:
        """True if value sits on the center line, allowing for float noise.

        The tolerance is a tiny fraction of sigma, widened to a few ulps of
        the center line so rounding on large-magnitude trend lines still
        counts as on the line.
        """
        tolerance = max(CENTER_LINE_TOLERANCE * self.sigma, CENTER_LINE_ULPS * math.ulp(self.center_line))
        return abs(value - self.center_line) <= tolerance


def flat_boundaries(limits: XMRLimits) -> ZoneBoundaries:
    """Boundaries for a chart with flat limits."""
    return ZoneBoundaries(
        center_line=limits.avg_x,
        unpl=limits.unpl,
        lnpl=limits.lnpl,
        upper_quartile=limits.upper_quartile,
        lower_quartile=limits.lower_quartile,
        sigma=limits.sigma,
    )


def trend_boundaries(trend: TrendLimits, index: int) -> ZoneBoundaries:
    """Boundaries at one index of a trended chart."""
    center = trend.center[index]
    return ZoneBoundaries(
        center_line=center,
        unpl=trend.upper[index],
        lnpl=trend.lower[index],
        upper_quartile=trend.upper_quartile[index],
        lower_quartile=trend.lower_quartile[index],
        sigma=(trend.upper[index] - center) / 3,
    )


def boundaries_for(count: int, limits: XMRLimits, trend: TrendLimits | None = None) -> list[ZoneBoundaries]:
    """Per-index boundaries for a sequence of *count* points.

    Raises:
        ValueError: If trend lines are supplied for a different number of points
    """
    if trend is None:
        flat = flat_boundaries(limits)
        return [flat] * count

    if len(trend) != count:
        raise ValueError(
            f"Trend lines cover {len(trend)} points but {count} points were supplied"
        )
    return [trend_boundaries(trend, i) for i in range(count)]


def classify_value(value: float, bounds: ZoneBoundaries) -> Zone:
    """Classify a value into a zone.

    Args:
        value: Value to classify
        bounds: Boundaries at the value's position

    Returns:
        Zone of the value
    """
    if value > bounds.unpl:
        return Zone.BEYOND_UNPL
    if value < bounds.lnpl:
        return Zone.BEYOND_LNPL
    if bounds.is_on_center(value):
        return Zone.CENTER
    if value > bounds.upper_quartile:
        return Zone.UPPER_OUTER
    if value < bounds.lower_quartile:
        return Zone.LOWER_OUTER
    if value >= bounds.center_line + bounds.sigma:
        return Zone.UPPER_MIDDLE
    if value <= bounds.center_line - bounds.sigma:
        return Zone.LOWER_MIDDLE
    if value > bounds.center_line:
        return Zone.UPPER_INNER
    return Zone.LOWER_INNER
