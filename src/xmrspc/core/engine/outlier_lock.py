"""Outlier-robust locked limits.

A few exceptional values inflate the average moving range and drag the
center line, widening the limits until the exceptions no longer look
exceptional. Locking recomputes limits with those points excluded so the
rest of the series is judged against a stable baseline.

Two entry points:
- lock_with_outlier_removal(): automatic search for the points to exclude
- lock_with_exclusions(): manual variant taking an explicit excluded set
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

import structlog

from xmrspc.core.engine.limits import (
    LimitOverrides,
    XMRLimits,
    compute_limits,
    override_limits,
)
from xmrspc.core.engine.points import DataPoint
from xmrspc.core.engine.violation_rules import detect_violations
from xmrspc.utils.constants import (
    AUTO_LOCK_MAX_OUTLIER_FRACTION,
    MAX_LOCK_ITERATIONS,
    MINIMUM_POINTS,
    MIN_RETAINED_POINTS,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LockResult:
    """Locked limits and the points left out of their calculation.

    Attributes:
        limits: Limits computed from the retained points
        outlier_indices: Sorted indices (into the input) excluded from the calculation
        iterations: Number of recomputation passes performed
    """
    limits: XMRLimits
    outlier_indices: tuple[int, ...]
    iterations: int = 1


def _outside_limits(points: Sequence[DataPoint], limits: XMRLimits) -> list[int]:
    return list(detect_violations(points, limits, enabled_rules={1}).outside_limits)


def should_auto_lock(
    points: Sequence[DataPoint],
    min_points: int = MINIMUM_POINTS,
    max_outlier_fraction: float = AUTO_LOCK_MAX_OUTLIER_FRACTION,
) -> bool:
    """Decide whether a few outliers are distorting an otherwise stable process.

    Args:
        points: Clean, chronologically sorted data points
        min_points: Fewest points for which locking is considered
        max_outlier_fraction: Largest share of points outside the limits that
            still counts as "a few outliers" rather than real instability

    Returns:
        True if at least one point is outside the unlocked limits and the
        outliers make up no more than max_outlier_fraction of the series
    """
    if len(points) < min_points:
        return False

    limits = compute_limits(points).limits
    outliers = _outside_limits(points, limits)
    if not outliers:
        return False

    fraction = len(outliers) / len(points)
    logger.debug("auto_lock_check", outliers=len(outliers), fraction=fraction)
    return fraction <= max_outlier_fraction


def lock_with_outlier_removal(
    points: Sequence[DataPoint],
    use_median: bool = False,
    max_iterations: int = MAX_LOCK_ITERATIONS,
    min_retained: int = MIN_RETAINED_POINTS,
) -> LockResult:
    """Iteratively exclude points outside the limits and recompute.

    Each pass computes limits over the retained points and flags retained
    points strictly outside them. The excluded set only ever grows, so the
    loop reaches a fixed point after at most ``len(points)`` passes; it is
    additionally capped at *max_iterations*. A pass whose exclusions would
    leave fewer than *min_retained* points is not applied.

    Args:
        points: Clean, chronologically sorted data points (never mutated)
        use_median: Use median-based limits
        max_iterations: Upper bound on recomputation passes
        min_retained: Fewest points that must remain in the calculation

    Returns:
        LockResult with the locked limits and the excluded indices
    """
    excluded: set[int] = set()
    retained = list(range(len(points)))
    limits = compute_limits(points, use_median).limits

    if len(points) < min_retained:
        return LockResult(limits=limits, outlier_indices=(), iterations=1)

    iterations = 0
    while iterations < max_iterations:
        iterations += 1
        subset = [points[i] for i in retained]
        limits = compute_limits(subset, use_median).limits

        new_outliers = {retained[i] for i in _outside_limits(subset, limits)}
        if not new_outliers:
            break

        if len(retained) - len(new_outliers) < min_retained:
            logger.debug(
                "lock_retention_floor_reached",
                retained=len(retained),
                candidates=len(new_outliers),
            )
            break

        excluded |= new_outliers
        retained = [i for i in retained if i not in excluded]
        logger.debug("lock_iteration", iteration=iterations, excluded=sorted(excluded))
    else:
        # Cap reached after applying exclusions; limits must reflect them
        limits = compute_limits([points[i] for i in retained], use_median).limits

    return LockResult(
        limits=limits,
        outlier_indices=tuple(sorted(excluded)),
        iterations=iterations,
    )


def lock_with_exclusions(
    points: Sequence[DataPoint],
    excluded_indices: Iterable[int],
    use_median: bool = False,
    overrides: LimitOverrides | None = None,
    min_retained: int = MIN_RETAINED_POINTS,
) -> LockResult:
    """Recompute limits with a caller-chosen set of points excluded.

    This is the manual override of lock_with_outlier_removal(): no search is
    performed. If fewer than *min_retained* points would remain, every point
    is used and no exclusion is reported.

    Args:
        points: Clean, chronologically sorted data points (never mutated)
        excluded_indices: Indices into *points* to leave out
        use_median: Use median-based limits
        overrides: Manually entered statistics replacing computed ones
        min_retained: Fewest points that must remain in the calculation

    Returns:
        LockResult with the locked limits and the excluded indices

    Raises:
        ValueError: If an excluded index is outside the sequence
        InvalidLimitsError: If overrides violate the limit invariants
    """
    excluded = set(excluded_indices)
    out_of_range = sorted(i for i in excluded if not 0 <= i < len(points))
    if out_of_range:
        raise ValueError(f"Excluded indices out of range for {len(points)} points: {out_of_range}")

    retained = [p for i, p in enumerate(points) if i not in excluded]
    if len(retained) < min_retained:
        logger.debug("lock_exclusions_ignored", retained=len(retained), min_retained=min_retained)
        retained = list(points)
        excluded = set()

    limits = compute_limits(retained, use_median).limits
    if overrides is not None:
        limits = override_limits(limits, overrides)

    return LockResult(limits=limits, outlier_indices=tuple(sorted(excluded)))
