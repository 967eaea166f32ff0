"""Data points fed into the XmR engine, and the cleaning step that prepares them.

The engine assumes its input is clean, deduplicated and sorted. prepare_points()
is the reference implementation of that cleaning step for callers pulling raw
rows from metric storage.
"""

import math
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from xmrspc.core.exceptions import InvalidDataPointError
from xmrspc.utils.timestamps import is_parseable, parse_timestamp

logger = structlog.get_logger(__name__)


class DataPoint(BaseModel):
    """A single metric observation.

    Attributes:
        timestamp: YYYYMM, YYYYMMDD or ISO 8601 timestamp string
        value: Finite measured value
        confidence: Optional confidence score in [0, 1], used for deduplication
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    value: float = Field(allow_inf_nan=False)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_must_parse(cls, v: str) -> str:
        if not is_parseable(v):
            raise ValueError(f"Unparseable timestamp: {v!r}")
        return v

    @property
    def moment(self) -> datetime:
        """Parsed timestamp as a UTC datetime."""
        return parse_timestamp(self.timestamp)

    def with_value(self, value: float) -> "DataPoint":
        """Return a copy of this point carrying a different value."""
        return self.model_copy(update={"value": value})


def point_values(points: Sequence[DataPoint]) -> list[float]:
    """Extract values, rejecting anything non-finite.

    DataPoint validation already refuses NaN and infinity, but points built
    with ``model_construct`` or ``model_copy`` skip validation.

    Raises:
        InvalidDataPointError: If any value is NaN or infinite
    """
    values = []
    for index, point in enumerate(points):
        value = float(point.value)
        if not math.isfinite(value):
            raise InvalidDataPointError(
                f"Point {index} ({point.timestamp}) has non-finite value {point.value!r}"
            )
        values.append(value)
    return values


def _prefer(existing: DataPoint, candidate: DataPoint) -> DataPoint:
    """Pick which of two same-timestamp points to keep.

    Higher confidence wins; a point with a confidence beats one without;
    otherwise the later duplicate wins.
    """
    if existing.confidence is not None and candidate.confidence is not None:
        return existing if existing.confidence > candidate.confidence else candidate
    if existing.confidence is not None:
        return existing
    return candidate


def prepare_points(raw: Iterable[DataPoint | Mapping[str, Any]]) -> list[DataPoint]:
    """Clean raw observations into the shape the engine expects.

    Invalid entries (unparseable timestamp, non-finite value, confidence out of
    range) are dropped. The remainder are sorted by timestamp and deduplicated
    by their normalized timestamp.

    Args:
        raw: DataPoint instances or mappings with timestamp/value/confidence keys

    Returns:
        New list of valid, sorted, unique DataPoints
    """
    valid: list[DataPoint] = []
    dropped = 0

    for item in raw:
        if isinstance(item, DataPoint):
            valid.append(item)
            continue
        try:
            valid.append(DataPoint.model_validate(item))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.debug("dropped_invalid_points", count=dropped)

    valid.sort(key=lambda p: p.moment)

    unique: dict[str, DataPoint] = {}
    for point in valid:
        key = point.moment.isoformat()
        existing = unique.get(key)
        unique[key] = point if existing is None else _prefer(existing, point)

    duplicates = len(valid) - len(unique)
    if duplicates:
        logger.debug("merged_duplicate_points", count=duplicates)

    return list(unique.values())
