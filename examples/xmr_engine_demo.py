"""Demonstration of the XmR engine.

Walks through the four chart modes on small synthetic series:
plain limits, auto-locked limits, trend-adjusted limits and seasonal
adjustment.

Run with: python examples/xmr_engine_demo.py
"""

import math

from xmrspc.core.engine import (
    PreferredAdjustment,
    TrendAdjustment,
    XmrEngine,
    auto_adjustment,
    prepare_points,
)
from xmrspc.core.logging import configure_logging


def _monthly(values):
    rows = []
    for i, value in enumerate(values):
        rows.append({"timestamp": f"{2022 + i // 12}{i % 12 + 1:02d}", "value": value})
    return prepare_points(rows)


def _print_chart(result):
    limits = result.limits
    print(f"Limits: avgX={limits.avg_x:.2f}, UNPL={limits.unpl:.2f}, "
          f"LNPL={limits.lnpl:.2f}, URL={limits.url:.2f}")
    for p in result.points:
        tag = p.priority.value if p.priority else ""
        mr = f"{p.moving_range:6.2f}" if p.moving_range is not None else "     -"
        excluded = " (excluded)" if p.excluded else ""
        print(f"  {p.timestamp}: value={p.value:8.2f} mR={mr} {tag}{excluded}")
    print(f"In control: {result.in_control}  ({result.processing_time_ms:.2f} ms)")
    print()


def demo_plain_limits(engine):
    """Plain limits over a series with one spike."""
    print("=" * 70)
    print("DEMO 1: Plain Limits")
    print("=" * 70)
    points = _monthly([52, 49, 51, 50, 48, 53, 50, 95, 51, 49, 50, 52])
    _print_chart(engine.render(points))


def demo_auto_lock(engine):
    """The same series with limits locked around the spike."""
    print("=" * 70)
    print("DEMO 2: Auto-Locked Limits")
    print("=" * 70)
    points = _monthly([52, 49, 51, 50, 48, 53, 50, 95, 51, 49, 50, 52])
    adjustment = auto_adjustment(points)
    print(f"Chosen adjustment: {type(adjustment).__name__}")
    _print_chart(engine.render(points, adjustment))


def demo_trend(engine):
    """Steady growth against flat and sloped limits."""
    print("=" * 70)
    print("DEMO 3: Trend-Adjusted Limits")
    print("=" * 70)
    points = _monthly([100 + 5 * i + (2 if i % 3 else -2) for i in range(18)])
    adjustment = engine.choose_adjustment(points, label="Active Users (Trend)")
    if isinstance(adjustment, TrendAdjustment):
        print(f"Fitted line: value = {adjustment.m:.2f} * index + {adjustment.c:.2f}")
    _print_chart(engine.render(points, adjustment))


def demo_seasonality(engine):
    """Yearly wave removed by monthly seasonal factors."""
    print("=" * 70)
    print("DEMO 4: Seasonal Adjustment")
    print("=" * 70)
    points = _monthly([200 + 40 * math.sin(2 * math.pi * i / 12) + (i % 2) for i in range(36)])
    adjustment = auto_adjustment(points, PreferredAdjustment.SEASONALITY)
    profile = adjustment.profile
    print(f"Period: {profile.period.value}, factors: "
          + ", ".join(f"{f:.2f}" for f in profile.factors))
    _print_chart(engine.render(points, adjustment))


if __name__ == "__main__":
    configure_logging("console", "INFO")
    engine = XmrEngine()
    demo_plain_limits(engine)
    demo_auto_lock(engine)
    demo_trend(engine)
    demo_seasonality(engine)
