"""Utilities for xmrspc statistical process control calculations."""

from .constants import (
    XmrConstants,
    XMR_CONSTANTS,
    NPL_FACTOR,
    URL_FACTOR,
    MINIMUM_POINTS,
    RUNNING_POINTS_LENGTH,
)

from .statistics import (
    moving_ranges,
    central_tendency,
    least_squares_line,
)

from .timestamps import (
    TimeBucket,
    parse_timestamp,
    is_parseable,
    detect_bucket_type,
)

__all__ = [
    # Constants
    "XmrConstants",
    "XMR_CONSTANTS",
    "NPL_FACTOR",
    "URL_FACTOR",
    "MINIMUM_POINTS",
    "RUNNING_POINTS_LENGTH",
    # Statistics
    "moving_ranges",
    "central_tendency",
    "least_squares_line",
    # Timestamps
    "TimeBucket",
    "parse_timestamp",
    "is_parseable",
    "detect_bucket_type",
]
