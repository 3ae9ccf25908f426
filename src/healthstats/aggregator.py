"""
Aggregation of health measurements.

High level
----------
Every function here is a pure function of the measurement collection it is
given (plus a reference instant where time matters). Nothing is cached and
nothing is mutated; callers re-invoke these functions whenever the data, the
selected metric, the time range or the selected day changes, and replace their
previous results wholesale.

Absence is encoded in the return shape rather than raised:
- an empty collection yields MetricSummary.empty(), the "no data"
  ChartSeries sentinel, or a WeekComparison of zeros;
- measurements without a usable timestamp are left out of date-dependent
  computations and logged as a data-quality warning, but still count towards
  average/minimum/maximum.

Timestamps
----------
When a measurement's timestamp and the reference instant differ in
tz-awareness, a naive timestamp is read in the reference's zone and an aware
timestamp is compared by its own wall-clock time. Calendar days always come
from the measurement's own wall clock.
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .measurement import Measurement
from .metric import (
    DEFAULT_MARKER_COLOR,
    METRIC_CONFIG,
    UNKNOWN_METRIC_THRESHOLD,
    MetricType,
    resolve_thresholds,
)

logger = logging.getLogger(__name__)

NO_DATA_LABEL = "No data"
DAY_LABEL_FORMAT = "%m/%d"
ONE_DECIMAL = Decimal("0.1")


class Trend(Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    NONE = "none"


@dataclass(frozen=True)
class MetricSummary:
    """
    Summary statistics for one metric.

    Attributes:
        metric: The metric summarized.
        current: Value of the latest measurement, None without data.
        average: Mean value, one decimal.
        minimum: Smallest value, one decimal.
        maximum: Largest value, one decimal.
        trend: Classification of `change` against the metric's threshold.
        change: Last value minus first value, one decimal.
        count: Number of measurements summarized.
    """

    metric: MetricType
    current: Optional[float] = None
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    trend: Trend = Trend.NONE
    change: float = 0.0
    count: int = 0

    @classmethod
    def empty(cls, metric: MetricType) -> "MetricSummary":
        return cls(metric=metric)

    @property
    def has_data(self) -> bool:
        return self.count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.value,
            "current": self.current,
            "average": self.average,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "trend": self.trend.value,
            "change": self.change,
            "count": self.count,
        }


@dataclass(frozen=True)
class ChartSeries:
    """
    Daily averages for one metric, ordered by day.

    A series with `no_data=True` is the "no data" sentinel: it carries a single
    NO_DATA_LABEL point valued 0.0 and must not be read as a real data point.
    """

    metric: MetricType
    days: Tuple[date, ...]
    labels: Tuple[str, ...]
    values: Tuple[float, ...]
    no_data: bool = False

    @classmethod
    def empty(cls, metric: MetricType) -> "ChartSeries":
        return cls(metric=metric, days=(), labels=(NO_DATA_LABEL,), values=(0.0,), no_data=True)

    def points(self) -> List[Tuple[str, float]]:
        return list(zip(self.labels, self.values))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.value,
            "no_data": self.no_data,
            "days": [d.isoformat() for d in self.days],
            "labels": list(self.labels),
            "values": list(self.values),
        }


@dataclass(frozen=True)
class WeekComparison:
    metric: MetricType
    current_week_start: date
    last_week_start: date
    current_week_average: float
    last_week_average: float
    change: float
    current_week_count: int = 0
    last_week_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.value,
            "current_week_start": self.current_week_start.isoformat(),
            "last_week_start": self.last_week_start.isoformat(),
            "current_week_average": self.current_week_average,
            "last_week_average": self.last_week_average,
            "change": self.change,
            "current_week_count": self.current_week_count,
            "last_week_count": self.last_week_count,
        }


@dataclass(frozen=True)
class DayMarker:
    """
    Calendar annotation for one day.

    Attributes:
        dot_color: Colour of the first metric logged that day (None for a
            selected day without data).
        metrics: Every metric present on that day.
        selected: True for the day the user selected.
    """

    dot_color: Optional[str]
    metrics: frozenset
    selected: bool = False


# ----------------------------------
# Small helpers
# ----------------------------------


def round1(value: float) -> float:
    """
    Round to one decimal place, halves away from zero (-0.0 comes back as 0.0).
    Works on the exact binary value of the float: 7.25 rounds to 7.3, while a
    value stored just below a half rounds down.
    """
    return float(Decimal(float(value)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)) + 0.0


def _align(timestamp: datetime, reference: datetime) -> datetime:
    """Make `timestamp` comparable with `reference`."""
    if reference.tzinfo is None:
        return timestamp.replace(tzinfo=None)
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=reference.tzinfo)
    return timestamp.astimezone(reference.tzinfo)


def _split_by_timestamp(
    measurements: Iterable[Measurement],
) -> Tuple[List[Measurement], List[Measurement]]:
    dated: List[Measurement] = []
    undated: List[Measurement] = []
    for measurement in measurements:
        (dated if measurement.logged_at is not None else undated).append(measurement)
    return dated, undated


def _warn_undated(undated: Sequence[Measurement], operation: str) -> None:
    if undated:
        ids = ", ".join(m.id for m in undated[:5])
        logger.warning(
            f"{operation}: skipped {len(undated)} measurement(s) without a usable timestamp ({ids})"
        )


def _chronological(measurements: Sequence[Measurement]) -> List[Measurement]:
    """
    Stable sort by logged_at; ties keep source order.
    Mixed naive/aware timestamps are ordered by wall-clock time.
    """
    if all(m.logged_at.tzinfo is not None for m in measurements):
        return sorted(measurements, key=lambda m: m.logged_at)
    return sorted(measurements, key=lambda m: m.logged_at.replace(tzinfo=None))


def _mean_or_zero(values: Sequence[float]) -> float:
    # an empty week averages to 0, not None
    if not values:
        return 0.0
    return float(pd.Series(values, dtype="float64").mean())


def _marker_color(metric: MetricType) -> str:
    config = METRIC_CONFIG.get(metric)
    return config.color if config is not None else DEFAULT_MARKER_COLOR


def week_bounds(day: date, week_start: int = calendar.SUNDAY) -> Tuple[date, date]:
    """
    Return the first and last day (inclusive) of the week containing `day`.
    `week_start` uses datetime.weekday() numbering (calendar.MONDAY .. calendar.SUNDAY).
    """
    offset = (day.weekday() - week_start) % 7
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=6)


# ----------------------------------
# Public API
# ----------------------------------


def classify_trend(change: float, threshold: float) -> Trend:
    """Changes within the closed interval [-threshold, threshold] are stable."""
    if change > threshold:
        return Trend.UP
    if change < -threshold:
        return Trend.DOWN
    return Trend.STABLE


def summarize(
    measurements: Iterable[Measurement],
    metric: MetricType,
    thresholds: Optional[Mapping[MetricType, float]] = None,
    *,
    chronological: bool = True,
) -> MetricSummary:
    """
    Summarize every measurement of `metric` in the collection.

    `current` and `change` follow the chronological order of the measurements
    that carry a timestamp (source order breaks ties). Measurements without a
    timestamp still count towards average/minimum/maximum. When none of them
    has a timestamp, or when `chronological` is False, the source order is
    used instead.
    """
    matching = [m for m in measurements if m.metric_type is metric]
    if not matching:
        return MetricSummary.empty(metric)

    values = pd.Series([m.value for m in matching], dtype="float64")

    ordered = matching
    if chronological:
        dated, undated = _split_by_timestamp(matching)
        if dated:
            _warn_undated(undated, f"summarize({metric.value})")
            ordered = _chronological(dated)

    threshold = resolve_thresholds(thresholds).get(metric, UNKNOWN_METRIC_THRESHOLD)
    if len(ordered) >= 2:
        change = round1(ordered[-1].value - ordered[0].value)
        trend = classify_trend(change, threshold)
    else:
        change = 0.0
        trend = Trend.NONE

    return MetricSummary(
        metric=metric,
        current=float(ordered[-1].value),
        average=round1(values.mean()),
        minimum=round1(values.min()),
        maximum=round1(values.max()),
        trend=trend,
        change=change,
        count=len(matching),
    )


def summarize_all(
    measurements: Iterable[Measurement],
    thresholds: Optional[Mapping[MetricType, float]] = None,
    *,
    chronological: bool = True,
) -> Dict[MetricType, MetricSummary]:
    """Summaries for every known metric, in display order."""
    collection = list(measurements)
    return {
        metric: summarize(collection, metric, thresholds, chronological=chronological)
        for metric in MetricType.known()
    }


def build_series(
    measurements: Iterable[Measurement],
    metric: MetricType,
    window_days: int,
    reference_instant: datetime,
) -> ChartSeries:
    """
    Daily mean values of `metric` over the trailing window.

    Keeps measurements logged at or after `reference_instant - window_days`
    (there is no upper bound), averages them per calendar day and orders the
    points by day. Returns ChartSeries.empty() when nothing matches.
    """
    window_start = reference_instant - timedelta(days=window_days)
    dated, undated = _split_by_timestamp(m for m in measurements if m.metric_type is metric)
    _warn_undated(undated, f"build_series({metric.value})")

    in_window = [m for m in dated if _align(m.logged_at, reference_instant) >= window_start]
    if not in_window:
        return ChartSeries.empty(metric)

    frame = pd.DataFrame(
        {
            "day": [m.day for m in in_window],
            "value": [float(m.value) for m in in_window],
        }
    )
    # group on real dates so ordering survives month and year boundaries
    daily = frame.groupby("day", sort=True)["value"].mean()
    days = tuple(daily.index)
    return ChartSeries(
        metric=metric,
        days=days,
        labels=tuple(d.strftime(DAY_LABEL_FORMAT) for d in days),
        values=tuple(float(v) for v in daily.to_numpy()),
    )


def compare_weeks(
    measurements: Iterable[Measurement],
    metric: MetricType,
    reference_instant: datetime,
    week_start: int = calendar.SUNDAY,
) -> WeekComparison:
    """
    Compare the average of `metric` in the week containing `reference_instant`
    with the average of the week before it. A week without data averages to 0.
    Measurements fall into weeks by their own calendar day.
    """
    reference_day = reference_instant.date()
    current_start, current_end = week_bounds(reference_day, week_start)
    last_start, last_end = week_bounds(reference_day - timedelta(days=7), week_start)

    dated, undated = _split_by_timestamp(m for m in measurements if m.metric_type is metric)
    _warn_undated(undated, f"compare_weeks({metric.value})")

    current_values: List[float] = []
    last_values: List[float] = []
    for measurement in dated:
        day = measurement.day
        if current_start <= day <= current_end:
            current_values.append(measurement.value)
        elif last_start <= day <= last_end:
            last_values.append(measurement.value)

    current_average = _mean_or_zero(current_values)
    last_average = _mean_or_zero(last_values)
    return WeekComparison(
        metric=metric,
        current_week_start=current_start,
        last_week_start=last_start,
        current_week_average=round1(current_average),
        last_week_average=round1(last_average),
        change=round1(current_average - last_average),
        current_week_count=len(current_values),
        last_week_count=len(last_values),
    )


def group_by_calendar_day(
    measurements: Iterable[Measurement],
    selected_day: Optional[date] = None,
) -> Dict[date, DayMarker]:
    """
    One DayMarker per day holding at least one measurement, ordered by day.
    The first metric seen on a day decides its dot colour. `selected_day` is
    always present, flagged as selected.
    """
    colors: Dict[date, str] = {}
    metrics: Dict[date, set] = defaultdict(set)

    dated, undated = _split_by_timestamp(measurements)
    _warn_undated(undated, "group_by_calendar_day")
    for measurement in dated:
        day = measurement.day
        colors.setdefault(day, _marker_color(measurement.metric_type))
        metrics[day].add(measurement.metric_type)

    markers = {
        day: DayMarker(dot_color=color, metrics=frozenset(metrics[day]), selected=(day == selected_day))
        for day, color in colors.items()
    }
    if selected_day is not None and selected_day not in markers:
        markers[selected_day] = DayMarker(dot_color=None, metrics=frozenset(), selected=True)
    return dict(sorted(markers.items()))


def records_on_day(measurements: Iterable[Measurement], day: date) -> List[Measurement]:
    """Measurements logged on `day`, oldest first."""
    dated, _ = _split_by_timestamp(measurements)
    on_day = [m for m in dated if m.day == day]
    return _chronological(on_day) if on_day else []
