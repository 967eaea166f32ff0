"""XmR chart orchestrator.

This module provides the XmrEngine class that runs a cleaned point series
through the chart pipeline for one adjustment mode:

1. Deseasonalise values (seasonal mode only)
2. Compute limits (locked mode reuses the locked limits)
3. Build trend lines (trend mode only)
4. Evaluate the five violation rules and the moving range limit
5. Return per-point flags ready for rendering
"""

import time
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from xmrspc.core.config import Settings, get_settings
from xmrspc.core.engine.adjustment import (
    AdjustmentMode,
    LockedAdjustment,
    NoAdjustment,
    PreferredAdjustment,
    SeasonalAdjustment,
    TrendAdjustment,
    auto_adjustment,
    resolve_preferred,
)
from xmrspc.core.engine.limits import XMRLimits, XmrPoint, compute_limits
from xmrspc.core.engine.points import DataPoint
from xmrspc.core.engine.seasonal import apply_factors
from xmrspc.core.engine.trend import TrendLimits, TrendStats, build_trend_lines
from xmrspc.core.engine.violation_rules import (
    ViolationRule,
    Violations,
    detect_violations,
    range_violations,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChartPoint:
    """One rendered point of the X and mR charts.

    Attributes:
        index: Position in the series
        timestamp: Original timestamp string
        value: Plotted value (deseasonalised in seasonal mode)
        moving_range: Absolute change from the previous value, None for the first
        confidence: Confidence carried over from the source point
        outside_limits: Rule 1 member
        running_points: Rule 2 member
        four_near_limit: Rule 3 member
        two_of_three_beyond_two_sigma: Rule 4 member
        fifteen_within_one_sigma: Rule 5 member
        running_start: True if a Rule 2 run begins here
        is_range_violation: Moving range above the upper range limit
        priority: Single rule tag to display, if any rule fired
        excluded: Left out of a locked limit calculation
    """
    index: int
    timestamp: str
    value: float
    moving_range: float | None
    confidence: float | None = None
    outside_limits: bool = False
    running_points: bool = False
    four_near_limit: bool = False
    two_of_three_beyond_two_sigma: bool = False
    fifteen_within_one_sigma: bool = False
    running_start: bool = False
    is_range_violation: bool = False
    priority: ViolationRule | None = None
    excluded: bool = False


@dataclass
class ChartResult:
    """Everything a renderer needs to draw one XmR chart.

    Attributes:
        limits: Flat limits (locked limits in locked mode)
        violations: Rule membership over the rendered points
        points: Per-point values and flags
        adjustment: Mode the chart was rendered in
        trend: Sloped limits, present in trend mode only
        has_enough_data: False when fewer points than the minimum were supplied
        processing_time_ms: Time taken to render in milliseconds
    """
    limits: XMRLimits
    violations: Violations
    points: list[ChartPoint]
    adjustment: AdjustmentMode
    trend: TrendLimits | None = None
    has_enough_data: bool = True
    processing_time_ms: float = field(default=0.0, compare=False)

    @property
    def in_control(self) -> bool:
        """True if no point triggered a rule or a range violation."""
        return not self.violations.has_signals and not any(
            p.is_range_violation for p in self.points
        )


class XmrEngine:
    """Render XmR charts from clean point series.

    Args:
        settings: Engine settings (uses the cached settings if None)
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    def choose_adjustment(
        self,
        points: Sequence[DataPoint],
        preferred: PreferredAdjustment | None = None,
        label: str | None = None,
    ) -> AdjustmentMode:
        """Pick the on-load adjustment for a metric using the engine settings.

        Args:
            points: Clean, chronologically sorted data points
            preferred: Explicit preference stored with the metric, if any
            label: Metric label, consulted only when no preference is stored

        Raises:
            AdjustmentConflictError: If the label asks for both trend and seasonality
        """
        settings = self._settings
        return auto_adjustment(
            points,
            resolve_preferred(preferred, label),
            min_points=settings.minimum_points,
            max_outlier_fraction=settings.auto_lock_max_outlier_fraction,
            max_iterations=settings.lock_max_iterations,
            min_retained=settings.lock_min_retained_points,
        )

    def render(
        self,
        points: Sequence[DataPoint],
        adjustment: AdjustmentMode | None = None,
        use_median: bool = False,
    ) -> ChartResult:
        """Compute limits and violations for one adjustment mode.

        Args:
            points: Clean, chronologically sorted data points (never mutated)
            adjustment: Mode to render in (plain limits if None)
            use_median: Use median-based limits

        Returns:
            ChartResult with limits, per-point flags and timing

        Raises:
            SeasonalFactorMismatchError: If a seasonal profile does not fit its
                own period and grouping
            InvalidDataPointError: If any value is NaN or infinite
        """
        start_time = time.perf_counter()
        if adjustment is None:
            adjustment = NoAdjustment()

        series: Sequence[DataPoint] = points
        if isinstance(adjustment, SeasonalAdjustment):
            profile = adjustment.profile
            series = apply_factors(points, profile.factors, profile.grouping, profile.period)

        base = compute_limits(series, use_median)
        limits = base.limits
        trend: TrendLimits | None = None
        excluded: frozenset[int] = frozenset()

        if isinstance(adjustment, LockedAdjustment):
            limits = adjustment.limits
            excluded = frozenset(adjustment.excluded_indices)
        elif isinstance(adjustment, TrendAdjustment):
            stats = TrendStats(m=adjustment.m, c=adjustment.c, avg_movement=limits.avg_movement)
            trend = build_trend_lines(stats, series)

        violations = detect_violations(
            base.points,
            limits,
            trend=trend,
            running_length=self._settings.running_points_length,
        )
        chart_points = self._chart_points(base.points, limits, violations, excluded)

        processing_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "chart_rendered",
            points=len(chart_points),
            mode=type(adjustment).__name__,
            signals=violations.has_signals,
            processing_time_ms=round(processing_time_ms, 3),
        )

        return ChartResult(
            limits=limits,
            violations=violations,
            points=chart_points,
            adjustment=adjustment,
            trend=trend,
            has_enough_data=len(points) >= self._settings.minimum_points,
            processing_time_ms=processing_time_ms,
        )

    def _chart_points(
        self,
        points: list[XmrPoint],
        limits: XMRLimits,
        violations: Violations,
        excluded: frozenset[int],
    ) -> list[ChartPoint]:
        """Merge rule membership into per-point flags."""
        range_flags = set(range_violations(points, limits))
        starts = set(violations.running_point_starts)

        chart_points = []
        for p in points:
            flags = violations.flags_for(p.index)
            chart_points.append(
                ChartPoint(
                    index=p.index,
                    timestamp=p.timestamp,
                    value=p.value,
                    moving_range=p.moving_range,
                    confidence=p.confidence,
                    outside_limits=flags[ViolationRule.RULE1],
                    running_points=flags[ViolationRule.RULE2],
                    four_near_limit=flags[ViolationRule.RULE3],
                    two_of_three_beyond_two_sigma=flags[ViolationRule.RULE4],
                    fifteen_within_one_sigma=flags[ViolationRule.RULE5],
                    running_start=p.index in starts,
                    is_range_violation=p.index in range_flags,
                    priority=violations.highest_priority(p.index),
                    excluded=p.index in excluded,
                )
            )
        return chart_points
