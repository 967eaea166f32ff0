"""XmR Engine - natural process limits, violation rules and adjustments."""

from .adjustment import (
    AdjustmentMode,
    LockedAdjustment,
    NoAdjustment,
    PreferredAdjustment,
    SeasonalAdjustment,
    TrendAdjustment,
    auto_adjustment,
    preferred_adjustment_from_label,
    resolve_preferred,
    select_adjustment,
)
from .limits import (
    LimitOverrides,
    LimitsResult,
    XMRLimits,
    XmrPoint,
    compute_limits,
    limits_from_values,
    override_limits,
    validate_limits,
)
from .outlier_lock import (
    LockResult,
    lock_with_exclusions,
    lock_with_outlier_removal,
    should_auto_lock,
)
from .points import DataPoint, prepare_points
from .seasonal import (
    Period,
    SeasonalProfile,
    SeasonalityGrouping,
    apply_factors,
    compute_seasonal_factors,
    determine_periodicity,
    is_seasonal_period,
    reseasonalize,
)
from .trend import (
    RegressionStats,
    TrendLimits,
    TrendStats,
    build_trend_lines,
    detrend,
    regress,
    trend_stats_for,
)
from .violation_rules import (
    RULE_PRIORITY,
    RuleResult,
    ViolationRule,
    ViolationRuleLibrary,
    Violations,
    detect_violations,
    range_violations,
)
from .xmr_engine import ChartPoint, ChartResult, XmrEngine
from .zones import Zone, ZoneBoundaries

__all__ = [
    # Engine
    "XmrEngine",
    "ChartResult",
    "ChartPoint",
    # Points
    "DataPoint",
    "prepare_points",
    # Limits
    "XMRLimits",
    "XmrPoint",
    "LimitsResult",
    "LimitOverrides",
    "compute_limits",
    "limits_from_values",
    "override_limits",
    "validate_limits",
    # Violation rules
    "ViolationRule",
    "ViolationRuleLibrary",
    "RuleResult",
    "RULE_PRIORITY",
    "Violations",
    "detect_violations",
    "range_violations",
    "Zone",
    "ZoneBoundaries",
    # Outlier lock
    "LockResult",
    "should_auto_lock",
    "lock_with_outlier_removal",
    "lock_with_exclusions",
    # Trend
    "RegressionStats",
    "TrendStats",
    "TrendLimits",
    "regress",
    "trend_stats_for",
    "build_trend_lines",
    "detrend",
    # Seasonality
    "Period",
    "SeasonalityGrouping",
    "SeasonalProfile",
    "determine_periodicity",
    "is_seasonal_period",
    "compute_seasonal_factors",
    "apply_factors",
    "reseasonalize",
    # Adjustments
    "AdjustmentMode",
    "NoAdjustment",
    "LockedAdjustment",
    "TrendAdjustment",
    "SeasonalAdjustment",
    "PreferredAdjustment",
    "select_adjustment",
    "preferred_adjustment_from_label",
    "resolve_preferred",
    "auto_adjustment",
]
