"""
Tests for summarize / summarize_all / classify_trend.
"""

from datetime import timedelta

import pytest
from healthstats.aggregator import MetricSummary, Trend, classify_trend, round1, summarize, summarize_all
from healthstats.metric import MetricType


def test_weight_rising_above_threshold(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.0, day1),
        make_measurement(MetricType.WEIGHT, 71.2, day1 + timedelta(days=4)),
    ]
    s = summarize(measurements, MetricType.WEIGHT, {MetricType.WEIGHT: 0.5})
    assert s.average == 70.6
    assert s.change == 1.2
    assert s.trend is Trend.UP
    assert s.current == 71.2
    assert s.minimum == 70.0
    assert s.maximum == 71.2
    assert s.count == 2


def test_steps_change_within_threshold_is_stable(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.STEPS, 3000, day1),
        make_measurement(MetricType.STEPS, 3100, day1 + timedelta(days=1)),
    ]
    s = summarize(measurements, MetricType.STEPS, {MetricType.STEPS: 500})
    assert s.change == 100
    assert s.trend is Trend.STABLE


def test_empty_collection_yields_absent_fields():
    s = summarize([], MetricType.HEART_RATE)
    assert s == MetricSummary.empty(MetricType.HEART_RATE)
    assert s.current is None
    assert s.average is None
    assert s.minimum is None
    assert s.maximum is None
    assert s.trend is Trend.NONE
    assert s.change == 0
    assert not s.has_data


def test_other_metrics_are_ignored(make_measurement, day1):
    measurements = [make_measurement(MetricType.WATER, 5, day1)]
    assert summarize(measurements, MetricType.HEART_RATE) == MetricSummary.empty(MetricType.HEART_RATE)


def test_single_measurement(make_measurement, day1):
    s = summarize([make_measurement(MetricType.SLEEP, 7.25, day1)], MetricType.SLEEP)
    # current keeps the raw value, the statistics are rounded half away from zero
    assert s.average == s.minimum == s.maximum == 7.3
    assert s.current == 7.25
    assert s.trend is Trend.NONE
    assert s.change == 0


@pytest.mark.parametrize(
    "change, expected",
    [
        (0.6, Trend.UP),
        (0.5, Trend.STABLE),
        (0.0, Trend.STABLE),
        (-0.5, Trend.STABLE),
        (-0.6, Trend.DOWN),
    ],
)
def test_classify_trend_closed_stable_interval(change, expected):
    assert classify_trend(change, 0.5) is expected


def test_trend_is_symmetric(make_measurement, day1):
    up = summarize(
        [make_measurement(MetricType.HEART_RATE, 60, day1), make_measurement(MetricType.HEART_RATE, 70, day1 + timedelta(hours=1))],
        MetricType.HEART_RATE,
    )
    down = summarize(
        [make_measurement(MetricType.HEART_RATE, 70, day1), make_measurement(MetricType.HEART_RATE, 60, day1 + timedelta(hours=1))],
        MetricType.HEART_RATE,
    )
    assert (up.trend, up.change) == (Trend.UP, 10)
    assert (down.trend, down.change) == (Trend.DOWN, -10)


def test_rounding_is_one_decimal_and_idempotent(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.04, day1),
        make_measurement(MetricType.WEIGHT, 70.17, day1 + timedelta(days=1)),
        make_measurement(MetricType.WEIGHT, 70.33, day1 + timedelta(days=2)),
    ]
    s = summarize(measurements, MetricType.WEIGHT)
    assert s.average == 70.2
    assert s.minimum == 70.0
    assert s.maximum == 70.3
    assert s.change == 0.3
    for field in (s.average, s.minimum, s.maximum, s.change):
        assert round1(field) == field


def test_round1_normalizes_negative_zero():
    assert str(round1(-0.04)) == "0.0"


def test_current_is_chronologically_latest(make_measurement, day1):
    # source order is not time order
    measurements = [
        make_measurement(MetricType.WEIGHT, 72.0, day1 + timedelta(days=5)),
        make_measurement(MetricType.WEIGHT, 70.0, day1),
    ]
    s = summarize(measurements, MetricType.WEIGHT)
    assert s.current == 72.0
    assert s.change == 2.0
    assert s.trend is Trend.UP


def test_source_order_when_requested(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 72.0, day1 + timedelta(days=5)),
        make_measurement(MetricType.WEIGHT, 70.0, day1),
    ]
    s = summarize(measurements, MetricType.WEIGHT, chronological=False)
    assert s.current == 70.0
    assert s.change == -2.0
    assert s.trend is Trend.DOWN


def test_undated_measurements_count_towards_statistics_only(make_measurement, day1, caplog):
    measurements = [
        make_measurement(MetricType.WATER, 4, day1),
        make_measurement(MetricType.WATER, 10, None),
        make_measurement(MetricType.WATER, 6, day1 + timedelta(days=1)),
    ]
    s = summarize(measurements, MetricType.WATER)
    assert s.count == 3
    assert s.maximum == 10
    assert s.average == 6.7
    assert s.current == 6
    assert s.change == 2
    assert s.trend is Trend.UP
    assert "without a usable timestamp" in caplog.text


def test_all_undated_falls_back_to_source_order(make_measurement):
    measurements = [
        make_measurement(MetricType.STEPS, 1000, None),
        make_measurement(MetricType.STEPS, 2000, None),
    ]
    s = summarize(measurements, MetricType.STEPS)
    assert s.current == 2000
    assert s.change == 1000
    assert s.trend is Trend.UP


def test_threshold_override(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.0, day1),
        make_measurement(MetricType.WEIGHT, 71.2, day1 + timedelta(days=1)),
    ]
    s = summarize(measurements, MetricType.WEIGHT, {MetricType.WEIGHT: 2.0})
    assert s.trend is Trend.STABLE


def test_unknown_metric_uses_zero_threshold(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.UNKNOWN, 3, day1),
        make_measurement(MetricType.UNKNOWN, 3.1, day1 + timedelta(days=1)),
    ]
    assert summarize(measurements, MetricType.UNKNOWN).trend is Trend.UP


def test_summarize_all_covers_known_metrics(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.0, day1),
        make_measurement(MetricType.UNKNOWN, 1, day1),
    ]
    summaries = summarize_all(measurements)
    assert list(summaries) == list(MetricType.known())
    assert summaries[MetricType.WEIGHT].count == 1
    assert not summaries[MetricType.STEPS].has_data


def test_summary_to_dict(make_measurement, day1):
    d = summarize([make_measurement(MetricType.WEIGHT, 70.0, day1)], MetricType.WEIGHT).to_dict()
    assert d["metric"] == "weight"
    assert d["trend"] == "none"
    assert d["average"] == 70.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        (70.25, 70.3),
        (7.25, 7.3),
        (-0.25, -0.3),
        (0.04, 0.0),
        (70.34, 70.3),
    ],
)
def test_round1_halves_away_from_zero(raw, expected):
    assert round1(raw) == expected


def test_average_on_a_half_rounds_up(make_measurement, day1):
    measurements = [
        make_measurement(MetricType.WEIGHT, 70.0, day1),
        make_measurement(MetricType.WEIGHT, 70.5, day1 + timedelta(days=1)),
    ]
    assert summarize(measurements, MetricType.WEIGHT).average == 70.3
