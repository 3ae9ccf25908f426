"""
Metric domain model.

Defines the fixed set of health metric types, their display configuration and
the per-metric trend thresholds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


class MetricType(Enum):
    """
    Enumeration of the health metrics a measurement can belong to.
    Values mirror the wire labels sent by the health-log API.
    """
    WEIGHT = "weight"
    HEART_RATE = "heartRate"
    STEPS = "steps"
    SLEEP = "sleep"
    WATER = "water"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str) -> "MetricType":
        """
        Convert a wire or human-readable label into the corresponding enum.
        Casing, spaces and underscores are ignored ("heartRate", "heart_rate"
        and "Heart Rate" all map to HEART_RATE).
        """
        key = str(label).strip().lower().replace(" ", "").replace("_", "")
        mapping = {
            "weight": cls.WEIGHT,
            "heartrate": cls.HEART_RATE,
            "steps": cls.STEPS,
            "sleep": cls.SLEEP,
            "water": cls.WATER,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown metric type label: {label!r}")

    @classmethod
    def known(cls) -> tuple["MetricType", ...]:
        """The real metrics, in display order."""
        return (cls.WEIGHT, cls.HEART_RATE, cls.STEPS, cls.SLEEP, cls.WATER)


@dataclass(frozen=True)
class MetricConfig:
    """
    Display and trend configuration for a metric.

    Attributes:
        label: Human-readable name.
        unit: Canonical display unit.
        color: Hex colour used for charts and calendar dots.
        chart_type: "line" or "bar".
        decimals: Number of decimals used when showing the current value.
        threshold: Minimum absolute change before a trend counts as up/down.
    """

    label: str
    unit: str
    color: str
    chart_type: str
    decimals: int
    threshold: float


METRIC_CONFIG: dict[MetricType, MetricConfig] = {
    MetricType.WEIGHT: MetricConfig("Weight", "kg", "#4F46E5", "line", 1, 0.5),
    MetricType.HEART_RATE: MetricConfig("Heart rate", "bpm", "#DC2626", "line", 0, 5),
    MetricType.STEPS: MetricConfig("Steps", "steps", "#10B981", "bar", 0, 500),
    MetricType.SLEEP: MetricConfig("Sleep", "hours", "#8B5CF6", "line", 1, 0.5),
    MetricType.WATER: MetricConfig("Water", "cups", "#0EA5E9", "bar", 0, 1),
}

# calendar dot for measurements whose metric we do not recognize
DEFAULT_MARKER_COLOR = "#4F46E5"

UNKNOWN_METRIC_THRESHOLD = 0.0

DEFAULT_THRESHOLDS: dict[MetricType, float] = {
    metric: float(config.threshold) for metric, config in METRIC_CONFIG.items()
}
DEFAULT_THRESHOLDS[MetricType.UNKNOWN] = UNKNOWN_METRIC_THRESHOLD


def get_metric_config(metric: MetricType) -> MetricConfig:
    """
    Return the configuration for `metric`.
    Unknown metrics render with the weight configuration.
    """
    return METRIC_CONFIG.get(metric, METRIC_CONFIG[MetricType.WEIGHT])


def resolve_thresholds(
    overrides: Optional[Mapping[MetricType, float]] = None,
) -> dict[MetricType, float]:
    """Merge caller overrides over DEFAULT_THRESHOLDS."""
    thresholds = dict(DEFAULT_THRESHOLDS)
    if overrides:
        for metric, value in overrides.items():
            thresholds[metric] = float(value)
    return thresholds


class TimeRange(Enum):
    """Trailing chart windows, valued in days."""
    WEEK = 7
    MONTH = 30
    YEAR = 365

    @classmethod
    def from_label(cls, label: str) -> "TimeRange":
        try:
            return cls[str(label).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown time range label: {label!r}")

    @property
    def days(self) -> int:
        return self.value
