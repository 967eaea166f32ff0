"""Statistical functions for XmR chart calculations.

This module provides functions for:
- Moving range computation
- Central tendency (mean or median) of a series
- Ordinary least-squares line fitting
"""

from typing import Sequence

import numpy as np


def moving_ranges(values: Sequence[float]) -> list[float]:
    """Compute absolute differences between consecutive values.

    Args:
        values: Individual measurements in chronological order

    Returns:
        List of moving ranges, one fewer than the number of values
        (empty for fewer than two values)

    Examples:
        >>> moving_ranges([10, 12, 11, 13])
        [2.0, 1.0, 2.0]
    """
    if len(values) < 2:
        return []

    arr = np.asarray(values, dtype=np.float64)
    return np.abs(np.diff(arr)).tolist()


def central_tendency(values: Sequence[float], use_median: bool = False) -> float:
    """Return the mean (default) or median of a series.

    An empty series has a central tendency of 0.0 so that degenerate charts
    still produce finite limits.

    Args:
        values: Series to summarise
        use_median: If True, use the median instead of the mean

    Returns:
        Mean or median as a float

    Examples:
        >>> central_tendency([1, 2, 3, 10])
        4.0
        >>> central_tendency([1, 2, 3, 10], use_median=True)
        2.5
    """
    if len(values) == 0:
        return 0.0

    arr = np.asarray(values, dtype=np.float64)
    if use_median:
        return float(np.median(arr))
    return float(np.mean(arr))


def least_squares_line(y: Sequence[float]) -> tuple[float, float, float]:
    """Fit ``y = m * x + c`` by ordinary least squares with ``x = 0, 1, 2, ...``.

    Args:
        y: Observations, at least two

    Returns:
        Tuple of (slope, intercept, r_squared). A series with no variance is
        fitted perfectly, so its r_squared is 1.0.

    Raises:
        ValueError: If fewer than two observations are supplied
    """
    if len(y) < 2:
        raise ValueError(f"Need at least 2 values for a regression, got {len(y)}")

    ys = np.asarray(y, dtype=np.float64)
    xs = np.arange(len(ys), dtype=np.float64)

    x_mean = xs.mean()
    y_mean = ys.mean()
    sxx = float(np.sum((xs - x_mean) ** 2))
    sxy = float(np.sum((xs - x_mean) * (ys - y_mean)))

    slope = sxy / sxx
    intercept = float(y_mean - slope * x_mean)

    ss_tot = float(np.sum((ys - y_mean) ** 2))
    if ss_tot == 0.0:
        return slope, intercept, 1.0

    residuals = ys - (slope * xs + intercept)
    ss_res = float(np.sum(residuals ** 2))
    return slope, intercept, 1.0 - ss_res / ss_tot
