"""
Command-line interface for healthstats.
Loads health measurements from a local table or the health-log API and prints
summaries, chart series, week-over-week comparisons and calendar markers.
"""

import json
import logging
import sys
import typing
from datetime import date, datetime

import click
from stairval.notepad import create_notepad

from .aggregator import (
    build_series,
    compare_weeks,
    group_by_calendar_day,
    records_on_day,
    summarize_all,
)
from .client import DataFetchError, HealthLogClient
from .loader import load_measurements, parse_timestamp
from .measurement import Measurement
from .metric import METRIC_CONFIG, MetricType, TimeRange, get_metric_config

logger = logging.getLogger(__name__)

METRIC_CHOICES = [metric.value for metric in MetricType.known()]
RANGE_CHOICES = [time_range.name.lower() for time_range in TimeRange]


@click.group()
@click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@click.option(
    "--log-file",
    "log_file_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="append log output to this file",
)
def main(verbose: bool, log_file_path: typing.Optional[str]):
    """healthstats: summaries and trends for logged health measurements."""
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            handlers=handlers,
            force=True,
        )


def _parse_thresholds(ctx, param, values) -> dict[MetricType, float]:
    # METRIC=VALUE pairs, e.g. --threshold weight=1.0
    thresholds: dict[MetricType, float] = {}
    for item in values:
        name, sep, raw = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected METRIC=VALUE, got {item!r}")
        try:
            thresholds[MetricType.from_label(name)] = float(raw)
        except ValueError as e:
            raise click.BadParameter(str(e))
    return thresholds


def _parse_now(ctx, param, value) -> datetime:
    if value is None:
        return datetime.now()
    parsed = parse_timestamp(value)
    if parsed is None:
        raise click.BadParameter(f"not an ISO timestamp: {value!r}")
    return parsed


_SOURCE_OPTIONS = [
    click.option(
        "-s",
        "--source",
        "source_path",
        type=click.Path(exists=True, dir_okay=False),
        help="local CSV, JSON or XLSX file of health logs (default: read the API)",
    ),
    click.option("--api-url", default=None, help="health-log API root (default: $HEALTHSTATS_API_URL)"),
    click.option("--now", "now", default=None, callback=_parse_now, help="reference instant (ISO, default: now)"),
    click.option("-r", "--raw", is_flag=True, help="print JSON instead of a table"),
]


def source_options(command):
    """Options shared by every command that reads measurements."""
    for option in reversed(_SOURCE_OPTIONS):
        command = option(command)
    return command


def _load(source_path: typing.Optional[str], api_url: typing.Optional[str], raw: bool) -> list[Measurement]:
    notepad = create_notepad("measurements")
    if source_path:
        try:
            measurements = load_measurements(source_path, notepad)
        except (ValueError, OSError) as e:
            logger.error(f"Failed to read '{source_path}': {e}")
            click.echo(f"Error: could not read '{source_path}' ({e})", err=True)
            sys.exit(1)
    else:
        try:
            measurements = HealthLogClient(api_url).fetch_measurements(notepad)
        except DataFetchError as e:
            click.echo(f"Error: could not load health data, try again later ({e})", err=True)
            sys.exit(1)
    _report_issues(notepad, err=raw)
    return measurements


def _report_issues(notepad, err: bool = False):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in health data:", err=err)
        for issue in notepad.errors():
            click.echo(f"- {issue.message}", err=err)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in health data:", err=err)
        for issue in notepad.warnings():
            click.echo(f"- {issue.message}", err=err)


def _format_number(value: typing.Optional[float], decimals: int = 1) -> str:
    return "-" if value is None else f"{value:.{decimals}f}"


def _echo_json(payload: typing.Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


TREND_COLORS = {"up": "red", "down": "green", "stable": "yellow", "none": None}


@main.command(name="summary")
@source_options
@click.option(
    "-t",
    "--threshold",
    "thresholds",
    multiple=True,
    callback=_parse_thresholds,
    help="override a trend threshold, e.g. weight=1.0 (repeatable)",
)
@click.option("--source-order", is_flag=True, help="take current/change from source order, not time order")
def summary(source_path, api_url, now, raw, thresholds, source_order):
    """
    Per-metric current value, average, minimum, maximum, trend and change.
    """
    measurements = _load(source_path, api_url, raw)
    summaries = summarize_all(measurements, thresholds, chronological=not source_order)

    if raw:
        _echo_json([s.to_dict() for s in summaries.values()])
        return

    click.echo(f"{'METRIC':12}{'CURRENT':>10}{'AVG':>10}{'MIN':>10}{'MAX':>10}  {'TREND':8}{'CHANGE':>8}")
    for metric, s in summaries.items():
        config = METRIC_CONFIG[metric]
        trend = click.style(f"{s.trend.value:8}", fg=TREND_COLORS[s.trend.value])
        click.echo(
            f"{metric.value:12}"
            f"{_format_number(s.current, config.decimals):>10}"
            f"{_format_number(s.average):>10}"
            f"{_format_number(s.minimum):>10}"
            f"{_format_number(s.maximum):>10}  "
            f"{trend}"
            f"{s.change:>8.1f}"
        )


@main.command(name="series")
@source_options
@click.option("-m", "--metric", type=click.Choice(METRIC_CHOICES, case_sensitive=False), default="weight")
@click.option("--range", "range_label", type=click.Choice(RANGE_CHOICES, case_sensitive=False), default="week")
def series(source_path, api_url, now, raw, metric, range_label):
    """
    Daily averages of one metric over the trailing week, month or year.
    """
    measurements = _load(source_path, api_url, raw)
    metric_type = MetricType.from_label(metric)
    time_range = TimeRange.from_label(range_label)
    chart = build_series(measurements, metric_type, time_range.days, now)

    if raw:
        _echo_json(chart.to_dict())
        return
    if chart.no_data:
        click.echo(f"No {metric_type.value} data in the last {time_range.days} days")
        return
    unit = get_metric_config(metric_type).unit
    for label, value in chart.points():
        click.echo(f"{label}  {value:10.1f} {unit}")


@main.command(name="compare")
@source_options
@click.option("-m", "--metric", type=click.Choice(METRIC_CHOICES, case_sensitive=False), default="weight")
def compare(source_path, api_url, now, raw, metric):
    """
    This week's average against last week's.
    """
    measurements = _load(source_path, api_url, raw)
    comparison = compare_weeks(measurements, MetricType.from_label(metric), now)

    if raw:
        _echo_json(comparison.to_dict())
        return
    unit = get_metric_config(comparison.metric).unit
    click.echo(f"This week (from {comparison.current_week_start}): {comparison.current_week_average:.1f} {unit}")
    click.echo(f"Last week (from {comparison.last_week_start}): {comparison.last_week_average:.1f} {unit}")
    click.echo(f"Change: {comparison.change:+.1f} {unit}")


@main.command(name="calendar")
@source_options
@click.option("-d", "--day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="selected day (YYYY-MM-DD)")
def calendar_markers(source_path, api_url, now, raw, day):
    """
    Days carrying at least one measurement, with their marker colour.
    """
    measurements = _load(source_path, api_url, raw)
    selected = day.date() if day else now.date()
    markers = group_by_calendar_day(measurements, selected)

    if raw:
        _echo_json(
            {
                d.isoformat(): {
                    "dot_color": m.dot_color,
                    "metrics": sorted(metric.value for metric in m.metrics),
                    "selected": m.selected,
                }
                for d, m in markers.items()
            }
        )
        return
    for d, m in markers.items():
        flag = "*" if m.selected else " "
        metrics = ", ".join(sorted(metric.value for metric in m.metrics)) or "-"
        click.echo(f"{flag} {d.isoformat()}  {m.dot_color or '':8} {metrics}")


@main.command(name="day")
@source_options
@click.option("-d", "--day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="day to list (YYYY-MM-DD)")
def day_records(source_path, api_url, now, raw, day):
    """
    Measurements logged on a single day.
    """
    measurements = _load(source_path, api_url, raw)
    selected: date = day.date() if day else now.date()
    records = records_on_day(measurements, selected)

    if raw:
        _echo_json(
            [
                {
                    "id": m.id,
                    "metric_type": m.raw_metric_type or m.metric_type.value,
                    "value": m.value,
                    "unit": m.unit,
                    "logged_at": m.logged_at.isoformat(),
                }
                for m in records
            ]
        )
        return
    if not records:
        click.echo(f"No data on {selected.isoformat()}")
        return
    for m in records:
        label = get_metric_config(m.metric_type).label if m.metric_type is not MetricType.UNKNOWN else m.raw_metric_type
        click.echo(f"{m.logged_at:%H:%M}  {label:12} {m.value:g} {m.unit}")


@main.command(name="trends")
@click.option("--api-url", default=None, help="health-log API root (default: $HEALTHSTATS_API_URL)")
@click.option("-r", "--raw", is_flag=True, help="print JSON instead of text")
def trends(api_url, raw):
    """
    Server-computed trend summary (not aggregated locally).
    """
    try:
        trend_summary = HealthLogClient(api_url).fetch_trend_summary()
    except DataFetchError as e:
        click.echo(f"Error: could not load trends, try again later ({e})", err=True)
        sys.exit(1)

    if raw:
        _echo_json(trend_summary.to_dict())
        return
    if not trend_summary.has_points:
        click.echo("Not enough data to show a trend.")
        return
    trend = trend_summary.trend.value if trend_summary.trend else "stable"
    change = "N/A" if trend_summary.weekly_change is None else f"{trend_summary.weekly_change:.2f}"
    click.echo(f"Trend: {trend}")
    click.echo(f"Weekly change: {change} {trend_summary.unit or ''}".rstrip())
    for point in trend_summary.points:
        click.echo(f"{point.day.month}/{point.day.day}  {point.average:.1f}")


if __name__ == "__main__":
    main()
