"""
View state and refresh coordination.

`ViewState` holds the user's selections (metric, time range, day) as an
explicit value; `build_snapshot` re-runs the pure aggregator for a state and
returns everything a statistics view shows. `RefreshCoordinator` applies
asynchronous fetch results with last-wins semantics so a slow, older fetch
never overwrites a newer one.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence

from .aggregator import (
    ChartSeries,
    DayMarker,
    MetricSummary,
    WeekComparison,
    build_series,
    compare_weeks,
    group_by_calendar_day,
    records_on_day,
    summarize_all,
)
from .measurement import Measurement
from .metric import MetricType, TimeRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    """
    User selections driving a statistics view.
    `selected_day` of None means "the reference day".
    """

    metric: MetricType = MetricType.WEIGHT
    time_range: TimeRange = TimeRange.WEEK
    selected_day: Optional[date] = None

    def with_metric(self, metric: MetricType) -> "ViewState":
        if metric is MetricType.UNKNOWN:
            raise ValueError("Cannot select the unknown metric")
        return dataclasses.replace(self, metric=metric)

    def with_time_range(self, time_range: TimeRange) -> "ViewState":
        return dataclasses.replace(self, time_range=time_range)

    def with_day(self, day: date) -> "ViewState":
        return dataclasses.replace(self, selected_day=day)


@dataclass(frozen=True)
class Snapshot:
    reference_instant: datetime
    state: ViewState
    summaries: Dict[MetricType, MetricSummary]
    series: ChartSeries
    comparison: WeekComparison
    calendar: Dict[date, DayMarker]
    day_records: List[Measurement]


def build_snapshot(
    measurements: Sequence[Measurement],
    state: ViewState,
    reference_instant: datetime,
    thresholds: Optional[Mapping[MetricType, float]] = None,
) -> Snapshot:
    selected_day = state.selected_day or reference_instant.date()
    return Snapshot(
        reference_instant=reference_instant,
        state=state,
        summaries=summarize_all(measurements, thresholds),
        series=build_series(measurements, state.metric, state.time_range.days, reference_instant),
        comparison=compare_weeks(measurements, state.metric, reference_instant),
        calendar=group_by_calendar_day(measurements, selected_day),
        day_records=records_on_day(measurements, selected_day),
    )


class RefreshCoordinator:
    """
    Last-wins bookkeeping for overlapping fetches.

    Usage::

        ticket = coordinator.begin()
        try:
            data = client.fetch_measurements(notepad)
        except DataFetchError as e:
            coordinator.fail(ticket, e)
        else:
            coordinator.complete(ticket, data)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._applied = 0
        self._measurements: List[Measurement] = []
        self._last_error: Optional[Exception] = None

    def begin(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def complete(self, ticket: int, measurements: Sequence[Measurement]) -> bool:
        """
        Apply `measurements` unless a newer fetch was already applied.
        Returns True when the result was applied.
        """
        with self._lock:
            if ticket <= self._applied:
                logger.debug(f"Dropping stale fetch #{ticket} (applied #{self._applied})")
                return False
            self._applied = ticket
            self._measurements = list(measurements)
            self._last_error = None
            return True

    def fail(self, ticket: int, error: Exception) -> None:
        # the previously applied data stays in place
        with self._lock:
            if ticket > self._applied:
                self._last_error = error
        logger.warning(f"Fetch #{ticket} failed: {error}")

    @property
    def measurements(self) -> List[Measurement]:
        with self._lock:
            return list(self._measurements)

    @property
    def last_error(self) -> Optional[Exception]:
        with self._lock:
            return self._last_error

    @property
    def applied_ticket(self) -> int:
        with self._lock:
            return self._applied
