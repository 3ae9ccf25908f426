import calendar
from datetime import date, datetime, timedelta, timezone

import pytest
from healthstats.aggregator import compare_weeks, group_by_calendar_day, week_bounds
from healthstats.measurement import Measurement
from healthstats.metric import MetricType


@pytest.mark.parametrize(
    "day, expected_start",
    [
        (date(2024, 6, 9), date(2024, 6, 9)),  # Sunday
        (date(2024, 6, 12), date(2024, 6, 9)),  # Wednesday
        (date(2024, 6, 15), date(2024, 6, 9)),  # Saturday
        (date(2024, 6, 16), date(2024, 6, 16)),
    ],
)
def test_week_bounds_sunday_start(day, expected_start):
    start, end = week_bounds(day)
    assert start == expected_start
    assert (end - start).days == 6


def test_week_bounds_monday_start():
    assert week_bounds(date(2024, 6, 9), calendar.MONDAY) == (date(2024, 6, 3), date(2024, 6, 9))


def test_no_data_in_either_week(reference_instant):
    comparison = compare_weeks([], MetricType.WEIGHT, reference_instant)
    assert comparison.change == 0
    assert comparison.current_week_average == 0
    assert comparison.last_week_average == 0
    assert comparison.current_week_start == date(2024, 6, 9)
    assert comparison.last_week_start == date(2024, 6, 2)


def test_week_over_week_change(make_measurement, reference_instant):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.0, datetime(2024, 6, 2, 0, 0)),  # last week, first day
        make_measurement(MetricType.WEIGHT, 70.4, datetime(2024, 6, 8, 23, 59)),  # last week, last day
        make_measurement(MetricType.WEIGHT, 71.0, datetime(2024, 6, 9, 7, 0)),
        make_measurement(MetricType.WEIGHT, 71.6, datetime(2024, 6, 12, 7, 0)),
        make_measurement(MetricType.WEIGHT, 60.0, datetime(2024, 6, 1, 7, 0)),  # two weeks ago
        make_measurement(MetricType.STEPS, 9000, datetime(2024, 6, 12, 7, 0)),
    ]
    comparison = compare_weeks(measurements, MetricType.WEIGHT, reference_instant)
    assert comparison.current_week_average == 71.3
    assert comparison.last_week_average == 70.2
    assert comparison.change == 1.1
    assert comparison.current_week_count == 2
    assert comparison.last_week_count == 2


def test_empty_week_averages_to_zero(make_measurement, reference_instant):
    measurements = [make_measurement(MetricType.STEPS, 4000, datetime(2024, 6, 10, 12))]
    comparison = compare_weeks(measurements, MetricType.STEPS, reference_instant)
    assert comparison.current_week_average == 4000
    assert comparison.last_week_average == 0
    assert comparison.change == 4000


def test_undated_measurements_are_ignored(make_measurement, reference_instant):
    measurements = [make_measurement(MetricType.SLEEP, 8, None)]
    comparison = compare_weeks(measurements, MetricType.SLEEP, reference_instant)
    assert comparison.current_week_count == 0
    assert comparison.change == 0


def test_comparison_to_dict(reference_instant):
    d = compare_weeks([], MetricType.WATER, reference_instant).to_dict()
    assert d["metric"] == "water"
    assert d["current_week_start"] == "2024-06-09"
    assert d["last_week_start"] == "2024-06-02"


def test_weeks_follow_the_measurement_wall_clock():
    # Saturday 23:30 in UTC-5 is already Sunday in UTC
    local = timezone(timedelta(hours=-5))
    reference = datetime(2024, 6, 12, 20, 0, tzinfo=timezone.utc)
    measurements = [
        Measurement("a", MetricType.WATER, 4, "cups", datetime(2024, 6, 8, 23, 30, tzinfo=local)),
        Measurement("b", MetricType.WATER, 6, "cups", datetime(2024, 6, 10, 9, 0, tzinfo=local)),
    ]
    comparison = compare_weeks(measurements, MetricType.WATER, reference)
    assert comparison.last_week_count == 1
    assert comparison.current_week_count == 1
    assert date(2024, 6, 8) in group_by_calendar_day(measurements)
