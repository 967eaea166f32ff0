"""Tests for adjustment mode selection."""

import math

import pytest

from helpers import daily_timestamps, make_points
from xmrspc.core.engine.adjustment import (
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
from xmrspc.core.engine.limits import limits_from_values
from xmrspc.core.engine.outlier_lock import LockResult
from xmrspc.core.engine.seasonal import SeasonalProfile, SeasonalityGrouping
from xmrspc.core.engine.trend import RegressionStats
from xmrspc.core.exceptions import AdjustmentConflictError
from xmrspc.utils.timestamps import TimeBucket


def _profile() -> SeasonalProfile:
    return SeasonalProfile(TimeBucket.MONTH, SeasonalityGrouping.NONE, (1.0,) * 12)


def _lock() -> LockResult:
    return LockResult(limits=limits_from_values(10.0, 1.0), outlier_indices=(3,))


class TestSelectAdjustment:
    """Test construction of a single adjustment mode."""

    def test_nothing_selected(self):
        assert select_adjustment() == NoAdjustment()

    def test_trend(self):
        mode = select_adjustment(trend=RegressionStats(m=2.0, c=1.0, r_squared=0.9))
        assert mode == TrendAdjustment(m=2.0, c=1.0)

    def test_seasonal(self):
        assert select_adjustment(seasonal=_profile()) == SeasonalAdjustment(profile=_profile())

    def test_locked(self):
        mode = select_adjustment(locked=_lock())
        assert isinstance(mode, LockedAdjustment)
        assert mode.excluded_indices == (3,)
        assert mode.auto is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"trend": RegressionStats(1.0, 0.0, 1.0), "seasonal": _profile()},
            {"trend": RegressionStats(1.0, 0.0, 1.0), "locked": _lock()},
            {"seasonal": _profile(), "locked": _lock()},
        ],
    )
    def test_conflicting_adjustments(self, kwargs):
        with pytest.raises(AdjustmentConflictError, match="Only one adjustment"):
            select_adjustment(**kwargs)


class TestPreferredAdjustment:
    """Test preference resolution."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Revenue (Trend)", PreferredAdjustment.TREND),
            ("Revenue (trend)", PreferredAdjustment.TREND),
            ("Signups (Seasonality)", PreferredAdjustment.SEASONALITY),
            ("Signups (SEASONALITY)", PreferredAdjustment.SEASONALITY),
            ("Churn", PreferredAdjustment.NONE),
            ("Trend without parentheses", PreferredAdjustment.NONE),
        ],
    )
    def test_from_label(self, label, expected):
        assert preferred_adjustment_from_label(label) == expected

    def test_label_with_both(self):
        with pytest.raises(AdjustmentConflictError):
            preferred_adjustment_from_label("Revenue (Trend) (Seasonality)")

    def test_explicit_preference_wins(self):
        assert resolve_preferred(PreferredAdjustment.NONE, "Revenue (Trend)") == PreferredAdjustment.NONE

    def test_label_fallback(self):
        assert resolve_preferred(None, "Revenue (Trend)") == PreferredAdjustment.TREND

    def test_nothing_known(self):
        assert resolve_preferred(None) == PreferredAdjustment.NONE


class TestAutoAdjustment:
    """Test the adjustment applied when a chart first loads."""

    def test_preferred_trend(self, trending_series):
        mode = auto_adjustment(trending_series, PreferredAdjustment.TREND)
        assert isinstance(mode, TrendAdjustment)
        assert mode.m == pytest.approx(5.0)

    def test_trend_needs_two_points(self):
        assert auto_adjustment(make_points([1.0]), PreferredAdjustment.TREND) == NoAdjustment()

    def test_preferred_seasonality(self):
        points = make_points([100 + 20 * math.sin(2 * math.pi * i / 12) for i in range(24)])
        mode = auto_adjustment(points, PreferredAdjustment.SEASONALITY)

        assert isinstance(mode, SeasonalAdjustment)
        assert mode.profile.period == TimeBucket.MONTH
        assert len(mode.profile.factors) == 12

    def test_seasonality_needs_minimum_points(self):
        mode = auto_adjustment(make_points([1, 2, 3, 4]), PreferredAdjustment.SEASONALITY)
        assert mode == NoAdjustment()

    def test_seasonality_skipped_for_daily_data(self):
        points = make_points([5, 6, 5, 6, 5, 6, 5, 6], daily_timestamps(8))
        assert auto_adjustment(points, PreferredAdjustment.SEASONALITY) == NoAdjustment()

    def test_auto_lock(self, outlier_series):
        mode = auto_adjustment(outlier_series)

        assert isinstance(mode, LockedAdjustment)
        assert mode.auto is True
        assert mode.excluded_indices == (9,)
        assert mode.limits == limits_from_values(10.0, 0.0)

    def test_daily_seasonality_does_not_auto_lock(self, outlier_series):
        points = make_points([p.value for p in outlier_series], daily_timestamps(10))
        assert auto_adjustment(points) == LockedAdjustment(
            limits=limits_from_values(10.0, 0.0), excluded_indices=(9,), auto=True
        )
        assert auto_adjustment(points, PreferredAdjustment.SEASONALITY) == NoAdjustment()

    def test_unfittable_trend_does_not_auto_lock(self, outlier_series):
        assert auto_adjustment(outlier_series[-1:], PreferredAdjustment.TREND) == NoAdjustment()

    def test_stable_series(self):
        assert auto_adjustment(make_points([10, 12, 11, 13, 10, 12])) == NoAdjustment()
