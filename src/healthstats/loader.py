"""
Ingestion of raw health-log rows into Measurement records.

Rows arrive either as an API payload (a list of dicts) or as a local table
(CSV, JSON or Excel). Both paths go through the same DataFrame normalization
and the same row mapper, which reports data-quality problems on a stairval
Notepad instead of raising:
- unparsable values are errors (the row is dropped);
- unknown metric labels are warnings (kept as MetricType.UNKNOWN);
- missing or unparsable timestamps are warnings (kept with logged_at=None).
"""

import logging
import pathlib
import typing
from datetime import datetime

import pandas as pd
from stairval.notepad import Notepad

from .measurement import Measurement
from .metric import METRIC_CONFIG, MetricType

logger = logging.getLogger(__name__)

# Column aliases → Measurement fields
RENAME_MAP = {
    "value1": "value",
    "metric": "metric_type",
    "type": "metric_type",
    "timestamp": "logged_at",
    "date": "logged_at",
    "loggedat": "logged_at",
    "metrictype": "metric_type",
}

REQUIRED_COLUMNS = {"metric_type", "value"}


def _normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    - normalize all headers to snake_case lowercase
    - apply renames from RENAME_MAP
    """
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"([a-z0-9])([A-Z])", r"\1_\2", regex=True)  # camelCase → camel_Case
        .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
        .str.lower()
    )
    return df.rename(
        columns={orig: target for orig, target in RENAME_MAP.items() if orig in df.columns}
    )


def frame_from_records(records: typing.Sequence[typing.Mapping[str, typing.Any]]) -> pd.DataFrame:
    """Build a normalized DataFrame from an API payload."""
    return _normalize_frame(pd.DataFrame.from_records(list(records)))


def load_table(path: str) -> pd.DataFrame:
    """
    Read a local measurement table into a normalized DataFrame.
    Supports .csv, .json (a list of records) and .xlsx (first sheet).
    """
    suffix = pathlib.Path(path).suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    elif suffix in (".xlsx", ".xlsm"):
        df = pd.read_excel(path, sheet_name=0, header=0, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported measurement file type: {suffix or path!r}")
    logger.debug(f"Loaded {len(df)} rows from {path!r}")
    return _normalize_frame(df)


def parse_timestamp(value: typing.Any) -> typing.Optional[datetime]:
    """
    Parse a timestamp cell into a datetime.
    None, NaN, NaT, blank strings and unparsable text all yield None.
    """
    if isinstance(value, str):
        if not value.strip():
            return None
        parsed = pd.to_datetime(value.strip(), errors="coerce")
    elif isinstance(value, datetime):
        parsed = pd.Timestamp(value)  # NaT stays NaT
    else:
        # None, NaN and bare numbers are not timestamps we can trust
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _parse_value(value: typing.Any) -> float:
    if value is None or isinstance(value, bool):
        raise ValueError(f"value must be numeric, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
    number = float(value)
    if pd.isna(number):
        raise ValueError("value is missing")
    return number


def _cell(row: pd.Series, column: str) -> typing.Any:
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        return None if pd.isna(value) else value
    except (TypeError, ValueError):
        return value


def map_measurements(df: pd.DataFrame, notepad: Notepad, source: str = "measurements") -> list[Measurement]:
    """
    Map each row of a normalized table to a Measurement.
    Required columns: metric_type, value.
    Optional columns: id, unit, logged_at.
    """
    records: list[Measurement] = []
    # no rows at all is a valid, empty collection
    if df.empty:
        logger.info(f"No rows in {source!r}")
        return records
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        notepad.add_error(f"Source {source!r}: missing required columns: {sorted(missing)}")
        return records

    for index, row in df.iterrows():
        raw_metric = str(_cell(row, "metric_type") or "").strip()
        try:
            metric = MetricType.from_label(raw_metric)
        except ValueError:
            notepad.add_warning(f"Source {source!r}, row {index}: unknown metric type {raw_metric!r}")
            metric = MetricType.UNKNOWN

        try:
            value = _parse_value(_cell(row, "value"))
        except (ValueError, TypeError) as exception:
            notepad.add_error(f"Source {source!r}, row {index}: {exception}")
            continue

        raw_timestamp = _cell(row, "logged_at")
        logged_at = parse_timestamp(raw_timestamp)
        if logged_at is None:
            notepad.add_warning(
                f"Source {source!r}, row {index}: missing or unparsable timestamp {raw_timestamp!r}"
            )

        raw_id = _cell(row, "id")
        default_unit = METRIC_CONFIG[metric].unit if metric in METRIC_CONFIG else ""
        unit = str(_cell(row, "unit") or "").strip() or default_unit

        records.append(
            Measurement(
                id=str(raw_id).strip() if raw_id is not None and str(raw_id).strip() else f"row-{index}",
                metric_type=metric,
                value=value,
                unit=unit,
                logged_at=logged_at,
                raw_metric_type=raw_metric,
            )
        )

    logger.info(f"Mapped {len(records)} of {len(df)} rows from {source!r}")
    return records


def records_to_measurements(
    records: typing.Sequence[typing.Mapping[str, typing.Any]], notepad: Notepad
) -> list[Measurement]:
    """Map an API payload (list of dicts) to Measurements."""
    if not records:
        return []
    return map_measurements(frame_from_records(records), notepad, source="api")


def load_measurements(path: str, notepad: Notepad) -> list[Measurement]:
    """Read a local table and map it to Measurements."""
    return map_measurements(load_table(path), notepad, source=pathlib.Path(path).name)
