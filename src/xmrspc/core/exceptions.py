"""Exceptions raised by the XmR engine.

The engine prefers degenerate-but-defined results for sparse data, so these
are only raised for caller-contract violations. Every caller error is also a
ValueError, matching how the statistics helpers report bad input.
"""


class XmrEngineError(Exception):
    """Base class for engine errors."""


class InvalidDataPointError(XmrEngineError, ValueError):
    """A non-finite value or unparseable timestamp reached the engine."""


class SeasonalityError(XmrEngineError, ValueError):
    """Seasonal decomposition was requested for an unusable period."""


class SeasonalFactorMismatchError(SeasonalityError):
    """Factor count does not match the phase count of the period/grouping."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected {expected} seasonal factors for this period and grouping, got {actual}"
        )


class AdjustmentConflictError(XmrEngineError, ValueError):
    """More than one of trend, seasonality and locked limits was requested."""


class InvalidLimitsError(XmrEngineError, ValueError):
    """Manually supplied limits violate the natural process limit invariants."""
