"""
Measurement domain model.

Defines the Measurement dataclass for a single logged health value.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .metric import MetricType


@dataclass(frozen=True)
class Measurement:
    """
    Represents one health measurement as received from the data source.

    Attributes:
        id: Opaque unique identifier.
        metric_type: Metric the value belongs to (UNKNOWN if unrecognized).
        value: Numeric magnitude, unit implied by the metric.
        unit: Display unit string.
        logged_at: Instant the measurement was taken, or None when the
            source timestamp was missing or unparsable.
        raw_metric_type: Metric label exactly as received.
    """

    id: str
    metric_type: MetricType
    value: float
    unit: str
    logged_at: Optional[datetime]
    raw_metric_type: str = ""

    def __post_init__(self):
        if not isinstance(self.metric_type, MetricType):
            raise TypeError(
                f"metric_type must be a MetricType, got {type(self.metric_type).__name__}"
            )
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError(f"value must be numeric, got {self.value!r}")

    @property
    def has_timestamp(self) -> bool:
        return self.logged_at is not None

    @property
    def day(self) -> Optional[date]:
        # wall-clock date as logged
        return self.logged_at.date() if self.logged_at is not None else None
