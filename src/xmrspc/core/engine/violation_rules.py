"""Violation rules for XmR charts.

This module provides the five signal-detection rules as pluggable rule
classes, each evaluating a whole classified point sequence and reporting every
index that takes part in a signal:

- Rule 1: point outside the natural process limits
- Rule 2: long run of points on one side of the center line
- Rule 3: three of four consecutive points beyond the same quartile
- Rule 4: two of three consecutive points beyond the same quartile
- Rule 5: fifteen consecutive points within one sigma (low variation)

Rules may overlap. RULE_PRIORITY gives the order a renderer uses to pick one
tag per point.

References:
    - Western Electric Company, "Statistical Quality Control Handbook" (1956)
    - Donald J. Wheeler, "Understanding Variation" (1993)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Sequence

import structlog

from xmrspc.core.engine.limits import XMRLimits, XmrPoint
from xmrspc.core.engine.points import DataPoint, point_values
from xmrspc.core.engine.trend import TrendLimits
from xmrspc.core.engine.zones import (
    LOWER_ZONES,
    NEAR_LOWER_LIMIT,
    NEAR_UPPER_LIMIT,
    UPPER_ZONES,
    WITHIN_ONE_SIGMA,
    Zone,
    boundaries_for,
    classify_value,
)
from xmrspc.utils.constants import (
    FOUR_NEAR_LIMIT_THRESHOLD,
    FOUR_NEAR_LIMIT_WINDOW,
    LOW_VARIATION_WINDOW,
    RUNNING_POINTS_LENGTH,
    TWO_OF_THREE_THRESHOLD,
    TWO_OF_THREE_WINDOW,
)

logger = structlog.get_logger(__name__)


class ViolationRule(str, Enum):
    """Rule tags as consumed by the rendering layer."""
    RULE1 = "rule1"
    RULE2 = "rule2"
    RULE3 = "rule3"
    RULE4 = "rule4"
    RULE5 = "rule5"


# Display priority when several rules fire on one point
RULE_PRIORITY: tuple[ViolationRule, ...] = (
    ViolationRule.RULE1,
    ViolationRule.RULE4,
    ViolationRule.RULE3,
    ViolationRule.RULE2,
    ViolationRule.RULE5,
)


@dataclass(frozen=True)
class ClassifiedPoint:
    """A point's value and zone at its chart position.

    Attributes:
        index: Position in the evaluated sequence
        value: Point value
        zone: Zone relative to the boundaries at this position
        sigma: One sigma at this position
    """
    index: int
    value: float
    zone: Zone
    sigma: float


@dataclass
class RuleResult:
    """Result of evaluating one rule over a sequence.

    Attributes:
        rule_id: Rule number (1-5)
        rule_name: Human-readable rule name
        tag: Rule tag used by the renderer
        indices: Sorted indices taking part in a signal
        run_starts: First index of each qualifying run (Rule 2 only)
        message: Human-readable summary
    """
    rule_id: int
    rule_name: str
    tag: ViolationRule
    indices: list[int]
    run_starts: list[int] = field(default_factory=list)
    message: str = ""

    @property
    def triggered(self) -> bool:
        return bool(self.indices)


class XmrRule(Protocol):
    """Protocol for violation rule implementations."""

    @property
    def rule_id(self) -> int:
        """Rule number (1-5)."""
        ...

    @property
    def rule_name(self) -> str:
        """Human-readable rule name."""
        ...

    @property
    def tag(self) -> ViolationRule:
        """Tag reported for points flagged by this rule."""
        ...

    @property
    def min_points_required(self) -> int:
        """Fewest points for which this rule can fire."""
        ...

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        """Evaluate the rule over the whole sequence."""
        ...


def _window_members(
    points: Sequence[ClassifiedPoint],
    window: int,
    threshold: int,
    upper: frozenset[Zone],
    lower: frozenset[Zone],
) -> set[int]:
    """Indices of same-side points in every window reaching the threshold."""
    flagged: set[int] = set()
    for start in range(len(points) - window + 1):
        chunk = points[start:start + window]
        for side in (upper, lower):
            members = [p.index for p in chunk if p.zone in side]
            if len(members) >= threshold:
                flagged.update(members)
    return flagged


class Rule1OutsideLimits:
    """Rule 1: One point strictly beyond UNPL or LNPL.

    The strongest signal: an exceptional value that routine variation does
    not explain.
    """

    rule_id = 1
    rule_name = "Outside Limits"
    tag = ViolationRule.RULE1
    min_points_required = 1

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        indices = [
            p.index for p in points
            if p.zone in (Zone.BEYOND_UNPL, Zone.BEYOND_LNPL)
        ]
        return RuleResult(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            tag=self.tag,
            indices=indices,
            message=f"{len(indices)} point(s) outside the natural process limits",
        )


class Rule2RunningPoints:
    """Rule 2: A run of points on the same side of the center line.

    Indicates a sustained shift. A point on the center line ends the run.
    Every point of a qualifying run is flagged.
    """

    rule_id = 2
    rule_name = "Running Points"
    tag = ViolationRule.RULE2

    def __init__(self, run_length: int = RUNNING_POINTS_LENGTH):
        if run_length < 2:
            raise ValueError(f"run_length must be at least 2, got {run_length}")
        self.run_length = run_length

    @property
    def min_points_required(self) -> int:
        return self.run_length

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        indices: list[int] = []
        starts: list[int] = []

        run: list[int] = []
        run_side = 0
        for p in points:
            side = 1 if p.zone in UPPER_ZONES else -1 if p.zone in LOWER_ZONES else 0
            if side != 0 and side == run_side:
                run.append(p.index)
                continue

            if len(run) >= self.run_length:
                starts.append(run[0])
                indices.extend(run)
            run = [p.index] if side != 0 else []
            run_side = side

        if len(run) >= self.run_length:
            starts.append(run[0])
            indices.extend(run)

        return RuleResult(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            tag=self.tag,
            indices=indices,
            run_starts=starts,
            message=f"{len(starts)} run(s) of {self.run_length}+ points on one side of center",
        )


class Rule3FourNearLimit:
    """Rule 3: Three of four consecutive points beyond the same quartile.

    Indicates a moderate, sustained shift toward one limit.
    """

    rule_id = 3
    rule_name = "Four Near Limit"
    tag = ViolationRule.RULE3
    min_points_required = FOUR_NEAR_LIMIT_WINDOW

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        flagged = _window_members(
            points, FOUR_NEAR_LIMIT_WINDOW, FOUR_NEAR_LIMIT_THRESHOLD,
            NEAR_UPPER_LIMIT, NEAR_LOWER_LIMIT,
        )
        return RuleResult(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            tag=self.tag,
            indices=sorted(flagged),
            message="3 of 4 consecutive points beyond the same quartile",
        )


class Rule4TwoOfThree:
    """Rule 4: Two of three consecutive points beyond the same quartile.

    Indicates clustering near a limit, a stronger hint than Rule 3.
    """

    rule_id = 4
    rule_name = "Two of Three Beyond Two Sigma"
    tag = ViolationRule.RULE4
    min_points_required = TWO_OF_THREE_WINDOW

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        flagged = _window_members(
            points, TWO_OF_THREE_WINDOW, TWO_OF_THREE_THRESHOLD,
            NEAR_UPPER_LIMIT, NEAR_LOWER_LIMIT,
        )
        return RuleResult(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            tag=self.tag,
            indices=sorted(flagged),
            message="2 of 3 consecutive points beyond the same quartile",
        )


class Rule5LowVariation:
    """Rule 5: Fifteen consecutive points strictly within one sigma of center.

    Indicates suspiciously low variation: limits computed from mixed data, or
    values being smoothed before they reach the chart. Never fires when sigma
    is zero.
    """

    rule_id = 5
    rule_name = "Low Variation"
    tag = ViolationRule.RULE5
    min_points_required = LOW_VARIATION_WINDOW

    def check(self, points: Sequence[ClassifiedPoint]) -> RuleResult:
        flagged: set[int] = set()
        for start in range(len(points) - LOW_VARIATION_WINDOW + 1):
            chunk = points[start:start + LOW_VARIATION_WINDOW]
            if all(p.sigma > 0 and p.zone in WITHIN_ONE_SIGMA for p in chunk):
                flagged.update(p.index for p in chunk)
        return RuleResult(
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            tag=self.tag,
            indices=sorted(flagged),
            message=f"{LOW_VARIATION_WINDOW} consecutive points within one sigma",
        )


class ViolationRuleLibrary:
    """Aggregates the five XmR violation rules.

    Args:
        running_length: Run length for Rule 2
    """

    def __init__(self, running_length: int = RUNNING_POINTS_LENGTH):
        self._rules: dict[int, XmrRule] = {}
        for rule in (
            Rule1OutsideLimits(),
            Rule2RunningPoints(running_length),
            Rule3FourNearLimit(),
            Rule4TwoOfThree(),
            Rule5LowVariation(),
        ):
            self._rules[rule.rule_id] = rule

    def check_all(
        self,
        points: Sequence[ClassifiedPoint],
        enabled_rules: set[int] | None = None,
    ) -> dict[int, RuleResult]:
        """Evaluate enabled rules.

        Args:
            points: Classified point sequence
            enabled_rules: Set of rule IDs to check (None = check all)

        Returns:
            Mapping of rule ID to its result, for every enabled rule
        """
        if enabled_rules is None:
            enabled_rules = set(self._rules)

        return {
            rule_id: rule.check(points)
            for rule_id, rule in self._rules.items()
            if rule_id in enabled_rules
        }

    def get_rule(self, rule_id: int) -> XmrRule | None:
        """Get rule by ID."""
        return self._rules.get(rule_id)


@dataclass(frozen=True)
class Violations:
    """Indices flagged by each rule, over the sequence they were computed from.

    Attributes:
        outside_limits: Rule 1 members
        running_points: Rule 2 members
        four_near_limit: Rule 3 members
        two_of_three_beyond_two_sigma: Rule 4 members
        fifteen_within_one_sigma: Rule 5 members
        running_point_starts: First index of each Rule 2 run
    """
    outside_limits: tuple[int, ...] = ()
    running_points: tuple[int, ...] = ()
    four_near_limit: tuple[int, ...] = ()
    two_of_three_beyond_two_sigma: tuple[int, ...] = ()
    fifteen_within_one_sigma: tuple[int, ...] = ()
    running_point_starts: tuple[int, ...] = ()
    _sets: dict[ViolationRule, frozenset[int]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_sets", {
            ViolationRule.RULE1: frozenset(self.outside_limits),
            ViolationRule.RULE2: frozenset(self.running_points),
            ViolationRule.RULE3: frozenset(self.four_near_limit),
            ViolationRule.RULE4: frozenset(self.two_of_three_beyond_two_sigma),
            ViolationRule.RULE5: frozenset(self.fifteen_within_one_sigma),
        })

    def _members(self, tag: ViolationRule) -> frozenset[int]:
        return self._sets[tag]

    def flags_for(self, index: int) -> dict[ViolationRule, bool]:
        """Per-rule membership of one index."""
        return {tag: index in self._members(tag) for tag in ViolationRule}

    def highest_priority(self, index: int) -> ViolationRule | None:
        """The single tag a renderer should show for *index*, if any."""
        for tag in RULE_PRIORITY:
            if index in self._members(tag):
                return tag
        return None

    @property
    def has_signals(self) -> bool:
        return any(self._members(tag) for tag in ViolationRule)


def classify_points(
    points: Sequence[DataPoint | XmrPoint],
    limits: XMRLimits,
    trend: TrendLimits | None = None,
) -> list[ClassifiedPoint]:
    """Classify every point against flat limits or its trend boundaries."""
    values = point_values(points)
    bounds = boundaries_for(len(values), limits, trend)
    return [
        ClassifiedPoint(index=i, value=value, zone=classify_value(value, b), sigma=b.sigma)
        for i, (value, b) in enumerate(zip(values, bounds))
    ]


def detect_violations(
    points: Sequence[DataPoint | XmrPoint],
    limits: XMRLimits,
    trend: TrendLimits | None = None,
    running_length: int = RUNNING_POINTS_LENGTH,
    enabled_rules: set[int] | None = None,
) -> Violations:
    """Evaluate all rules against flat limits or index-aligned trend lines.

    Args:
        points: Points to evaluate (never mutated)
        limits: Flat limits; ignored for comparisons when trend is supplied
        trend: Optional sloped limits, one entry per point
        running_length: Run length for Rule 2
        enabled_rules: Set of rule IDs to evaluate (None = all)

    Returns:
        Violations with full membership for every rule

    Raises:
        ValueError: If trend lines do not cover exactly the supplied points
    """
    classified = classify_points(points, limits, trend)
    results = ViolationRuleLibrary(running_length).check_all(classified, enabled_rules)

    def members(rule_id: int) -> tuple[int, ...]:
        result = results.get(rule_id)
        return tuple(result.indices) if result else ()

    running = results.get(2)
    violations = Violations(
        outside_limits=members(1),
        running_points=members(2),
        four_near_limit=members(3),
        two_of_three_beyond_two_sigma=members(4),
        fifteen_within_one_sigma=members(5),
        running_point_starts=tuple(running.run_starts) if running else (),
    )

    logger.debug(
        "violations_detected",
        points=len(classified),
        trended=trend is not None,
        triggered=[r.rule_id for r in results.values() if r.triggered],
    )
    return violations


def range_violations(points: Sequence[XmrPoint], limits: XMRLimits) -> list[int]:
    """Indices whose moving range is strictly above the upper range limit."""
    return [
        p.index for p in points
        if p.moving_range is not None and p.moving_range > limits.url
    ]
