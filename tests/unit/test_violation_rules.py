"""Tests for the five XmR violation rules.

Tests each rule with known outcomes, edge cases, and boundary conditions.

Zone layout for the standard test limits (avg_x=100, avg_movement=10):
  BEYOND_LNPL:  value < 73.4
  LOWER_OUTER:  73.4 <= value < 86.7
  LOWER_MIDDLE: 86.7 <= value <= 91.13
  LOWER_INNER:  91.13 < value < 100
  CENTER:       value == 100
  UPPER_INNER:  100 < value < 108.87
  UPPER_MIDDLE: 108.87 <= value <= 113.3
  UPPER_OUTER:  113.3 < value <= 126.6
  BEYOND_UNPL:  value > 126.6
"""

import random

import pytest

from helpers import make_points
from xmrspc.core.engine.limits import XMRLimits, XmrPoint, compute_limits, limits_from_values
from xmrspc.core.engine.trend import TrendStats, build_trend_lines
from xmrspc.core.engine.violation_rules import (
    RULE_PRIORITY,
    Rule2RunningPoints,
    ViolationRule,
    ViolationRuleLibrary,
    classify_points,
    detect_violations,
    range_violations,
)
from xmrspc.core.engine.zones import Zone


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _limits() -> XMRLimits:
    """Standard test limits centred on 100."""
    return limits_from_values(100.0, 10.0)


def _detect(values: list[float], **kwargs):
    return detect_violations(make_points(values), _limits(), **kwargs)


# ---------------------------------------------------------------------------
# Zones
# ---------------------------------------------------------------------------

class TestClassification:
    """Test zone classification at the boundaries."""

    @pytest.mark.parametrize(
        "value,zone",
        [
            (130.0, Zone.BEYOND_UNPL),
            (120.0, Zone.UPPER_OUTER),
            (110.0, Zone.UPPER_MIDDLE),
            (105.0, Zone.UPPER_INNER),
            (100.0, Zone.CENTER),
            (95.0, Zone.LOWER_INNER),
            (90.0, Zone.LOWER_MIDDLE),
            (80.0, Zone.LOWER_OUTER),
            (70.0, Zone.BEYOND_LNPL),
        ],
    )
    def test_zones(self, value, zone):
        [classified] = classify_points(make_points([value]), _limits())
        assert classified.zone == zone

    def test_limit_value_is_not_beyond(self):
        limits = _limits()
        classified = classify_points(make_points([limits.unpl, limits.lnpl]), limits)
        assert classified[0].zone == Zone.UPPER_OUTER
        assert classified[1].zone == Zone.LOWER_OUTER

    def test_quartile_value_is_not_outer(self):
        limits = _limits()
        [classified] = classify_points(make_points([limits.upper_quartile]), limits)
        assert classified.zone == Zone.UPPER_MIDDLE

    def test_center_tolerance_ignores_magnitude(self):
        limits = limits_from_values(1e9, 0.3)
        values = [1e9 + 0.5, 1e9, 1e9 + 0.5, 1e9 + 0.01]
        zones = [c.zone for c in classify_points(make_points(values), limits)]
        assert zones == [Zone.UPPER_OUTER, Zone.CENTER, Zone.UPPER_OUTER, Zone.UPPER_INNER]

        violations = detect_violations(make_points(values[:3]), limits)
        assert violations.two_of_three_beyond_two_sigma == (0, 2)

    def test_zero_sigma_center_is_exact(self):
        limits = limits_from_values(5.0, 0.0)
        zones = [c.zone for c in classify_points(make_points([5.0, 5.0 + 1e-6]), limits)]
        assert zones == [Zone.CENTER, Zone.BEYOND_UNPL]


# ---------------------------------------------------------------------------
# Rule 1
# ---------------------------------------------------------------------------

class TestRule1OutsideLimits:
    """Test Rule 1: point strictly outside the natural process limits."""

    def test_above_and_below(self):
        violations = _detect([100, 130, 100, 70, 100])
        assert violations.outside_limits == (1, 3)

    def test_value_on_limit_not_flagged(self):
        limits = _limits()
        violations = detect_violations(make_points([limits.unpl, limits.lnpl]), limits)
        assert violations.outside_limits == ()

    def test_soundness(self):
        """Every flagged index is strictly outside, every unflagged one inside."""
        values = [100, 127, 126.6, 73.4, 73.3, 99, 140]
        limits = _limits()
        flagged = set(detect_violations(make_points(values), limits).outside_limits)
        for i, v in enumerate(values):
            assert (i in flagged) == (v > limits.unpl or v < limits.lnpl)

    def test_zero_width_limits(self):
        limits = compute_limits(make_points([5, 5, 5])).limits
        violations = detect_violations(make_points([5, 5, 6, 5]), limits)
        assert violations.outside_limits == (2,)


# ---------------------------------------------------------------------------
# Rule 2
# ---------------------------------------------------------------------------

class TestRule2RunningPoints:
    """Test Rule 2: eight or more points on one side of the center line."""

    def test_run_of_eight_above(self):
        violations = _detect([101] * 8)
        assert violations.running_points == tuple(range(8))
        assert violations.running_point_starts == (0,)

    def test_run_of_seven_not_flagged(self):
        assert _detect([101] * 7).running_points == ()

    def test_run_below(self):
        violations = _detect([100, 99, 99, 99, 99, 99, 99, 99, 99])
        assert violations.running_points == tuple(range(1, 9))
        assert violations.running_point_starts == (1,)

    def test_center_point_breaks_run(self):
        assert _detect([101] * 4 + [100] + [101] * 4).running_points == ()

    def test_side_change_breaks_run(self):
        assert _detect([101] * 4 + [99] + [101] * 4).running_points == ()

    def test_two_runs(self):
        violations = _detect([101] * 8 + [99] * 9)
        assert violations.running_point_starts == (0, 8)
        assert len(violations.running_points) == 17

    def test_configurable_length(self):
        assert _detect([101] * 5, running_length=5).running_points == tuple(range(5))

    def test_run_length_must_be_sensible(self):
        with pytest.raises(ValueError):
            Rule2RunningPoints(1)


# ---------------------------------------------------------------------------
# Rules 3 and 4
# ---------------------------------------------------------------------------

class TestRule3FourNearLimit:
    """Test Rule 3: three of four consecutive points beyond the same quartile."""

    def test_three_of_four_upper(self):
        assert _detect([120, 120, 100, 120]).four_near_limit == (0, 1, 3)

    def test_three_of_four_lower(self):
        assert _detect([80, 100, 80, 80]).four_near_limit == (0, 2, 3)

    def test_two_of_four_not_flagged(self):
        assert _detect([120, 100, 100, 120]).four_near_limit == ()

    def test_opposite_sides_do_not_combine(self):
        assert _detect([120, 80, 120, 80]).four_near_limit == ()

    def test_quartile_itself_does_not_count(self):
        q = _limits().upper_quartile
        assert _detect([q, q, q, q]).four_near_limit == ()


class TestRule4TwoOfThree:
    """Test Rule 4: two of three consecutive points beyond the same quartile."""

    def test_two_of_three(self):
        assert _detect([120, 100, 120]).two_of_three_beyond_two_sigma == (0, 2)

    def test_one_of_three_not_flagged(self):
        assert _detect([120, 100, 100, 120]).two_of_three_beyond_two_sigma == ()

    def test_beyond_limit_counts_toward_window(self):
        assert _detect([130, 120, 100]).two_of_three_beyond_two_sigma == (0, 1)

    def test_lower_side(self):
        assert _detect([100, 80, 80]).two_of_three_beyond_two_sigma == (1, 2)


# ---------------------------------------------------------------------------
# Rule 5
# ---------------------------------------------------------------------------

class TestRule5LowVariation:
    """Test Rule 5: fifteen consecutive points within one sigma."""

    def test_fifteen_within_sigma(self):
        values = [102, 98] * 7 + [101]
        assert _detect(values).fifteen_within_one_sigma == tuple(range(15))

    def test_fourteen_not_flagged(self):
        assert _detect([102, 98] * 7).fifteen_within_one_sigma == ()

    def test_point_beyond_sigma_breaks_window(self):
        values = [102] * 7 + [110] + [102] * 7
        assert _detect(values).fifteen_within_one_sigma == ()

    def test_never_fires_with_zero_sigma(self):
        points = make_points([5.0] * 20)
        limits = compute_limits(points).limits
        assert detect_violations(points, limits).fifteen_within_one_sigma == ()


# ---------------------------------------------------------------------------
# Library, priority and range violations
# ---------------------------------------------------------------------------

class TestViolations:
    """Test aggregate violation results."""

    def test_priority_order(self):
        assert RULE_PRIORITY == (
            ViolationRule.RULE1,
            ViolationRule.RULE4,
            ViolationRule.RULE3,
            ViolationRule.RULE2,
            ViolationRule.RULE5,
        )

    def test_highest_priority(self):
        violations = _detect([101] * 7 + [140])
        assert 7 in violations.running_points
        assert violations.highest_priority(7) == ViolationRule.RULE1
        assert violations.highest_priority(0) == ViolationRule.RULE2

    def test_rule4_outranks_rule3(self):
        violations = _detect([120, 120, 100, 120])
        assert violations.highest_priority(0) == ViolationRule.RULE4

    def test_flags_for(self):
        flags = _detect([100, 130, 100]).flags_for(1)
        assert flags[ViolationRule.RULE1] is True
        assert flags[ViolationRule.RULE2] is False

    @pytest.mark.parametrize("seed", range(5))
    def test_lookups_agree_with_members(self, seed):
        rng = random.Random(seed)
        values = [rng.gauss(100, 4) + (40 if rng.random() < 0.02 else 0) for _ in range(2000)]
        violations = detect_violations(make_points(values), _limits())
        members = {
            ViolationRule.RULE1: violations.outside_limits,
            ViolationRule.RULE2: violations.running_points,
            ViolationRule.RULE3: violations.four_near_limit,
            ViolationRule.RULE4: violations.two_of_three_beyond_two_sigma,
            ViolationRule.RULE5: violations.fifteen_within_one_sigma,
        }
        for index in range(len(values)):
            flags = violations.flags_for(index)
            assert flags == {tag: index in members[tag] for tag in ViolationRule}
            expected = next((tag for tag in RULE_PRIORITY if flags[tag]), None)
            assert violations.highest_priority(index) == expected

    def test_equality_ignores_lookup_cache(self):
        assert _detect([100, 130, 100]) == _detect([100, 130, 100])

    def test_quiet_series_has_no_signals(self):
        violations = _detect([100, 105, 95, 103, 97])
        assert not violations.has_signals
        assert violations.highest_priority(0) is None

    def test_enabled_rules_subset(self):
        violations = _detect([101] * 7 + [140], enabled_rules={1})
        assert violations.outside_limits == (7,)
        assert violations.running_points == ()

    def test_library_lookup(self):
        library = ViolationRuleLibrary()
        assert library.get_rule(3).rule_name == "Four Near Limit"
        assert library.get_rule(9) is None

    def test_trend_lines_must_match_points(self):
        trend = build_trend_lines(TrendStats(m=1.0, c=0.0, avg_movement=1.0), make_points([1, 2, 3]))
        with pytest.raises(ValueError, match="Trend lines cover"):
            detect_violations(make_points([1, 2]), _limits(), trend=trend)

    def test_range_violations(self):
        limits = _limits()
        points = [
            XmrPoint(index=0, timestamp="202401", value=100, moving_range=None),
            XmrPoint(index=1, timestamp="202402", value=140, moving_range=40.0),
            XmrPoint(index=2, timestamp="202403", value=110, moving_range=limits.url),
        ]
        assert range_violations(points, limits) == [1]
