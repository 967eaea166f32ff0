"""Statistical constants for XmR (Individuals / Moving Range) charts.

Scaling factors follow Wheeler's natural process limit formulation for
moving ranges of two consecutive values (n=2 subgroups), as tabulated in
ASTM E2587 and the NIST Engineering Statistics Handbook.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class XmrConstants:
    """Scaling constants for an individuals chart built on two-point moving ranges.

    Attributes:
        span: Number of consecutive values in one moving range
        npl_factor: Scaling from MR-bar to the natural process limits (3 / d2, with d2 = 1.128)
        url_factor: Scaling from MR-bar to the upper range limit (D4)
    """
    span: int
    npl_factor: float
    url_factor: float


XMR_CONSTANTS = XmrConstants(span=2, npl_factor=2.66, url_factor=3.267)

# Shorthands used throughout the engine
NPL_FACTOR = XMR_CONSTANTS.npl_factor
URL_FACTOR = XMR_CONSTANTS.url_factor

# Fewest points for which a chart is worth rendering. Enforced by callers.
MINIMUM_POINTS = 5

# Violation rule thresholds (Western Electric conventions)
RUNNING_POINTS_LENGTH = 8
FOUR_NEAR_LIMIT_WINDOW = 4
FOUR_NEAR_LIMIT_THRESHOLD = 3
TWO_OF_THREE_WINDOW = 3
TWO_OF_THREE_THRESHOLD = 2
LOW_VARIATION_WINDOW = 15

# Distance from the center line, as a fraction of sigma, still treated as on the line
CENTER_LINE_TOLERANCE = 1e-9
# Floor for that distance in units of the center line's ulp
CENTER_LINE_ULPS = 64

# Outlier-robust locking
AUTO_LOCK_MAX_OUTLIER_FRACTION = 0.2
MIN_RETAINED_POINTS = 3
MAX_LOCK_ITERATIONS = 10
