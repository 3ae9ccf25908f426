"""
Health-log API client.

High level
----------
The aggregator never performs I/O; this module is the data-source
collaborator that feeds it. It exposes two reads:

- `fetch_measurements`  : GET /health-logs/        → list[Measurement]
- `fetch_trend_summary` : GET /health-logs/trends  → TrendSummary
  (a server-computed trend payload that bypasses the aggregator)

Key behaviors
-------------
- Small retry/backoff on network, HTTP and JSON decode problems.
- Fetches are atomic: the caller either receives the complete mapped result
  or a `DataFetchError`; partial data is never returned.

Environment
-----------
HEALTHSTATS_API_URL   : Base URL of the health-log API (default "http://localhost:8000")
HEALTHSTATS_API_TOKEN : Optional bearer token
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import requests
from stairval.notepad import Notepad

from .aggregator import Trend
from .loader import parse_timestamp, records_to_measurements
from .measurement import Measurement

logger = logging.getLogger(__name__)


class DataFetchError(RuntimeError):
    """Raised when the health-log API cannot be read; the fetch may be retried."""


DEFAULT_API_URL = "http://localhost:8000"
MEASUREMENTS_PATH = "/health-logs/"
TRENDS_PATH = "/health-logs/trends"


@dataclass(frozen=True)
class TrendPoint:
    day: date
    average: float


@dataclass(frozen=True)
class TrendSummary:
    """
    Server-computed trend payload: `{points, trend, weekly_change, unit}`.
    """

    points: List[TrendPoint] = field(default_factory=list)
    trend: Optional[Trend] = None
    weekly_change: Optional[float] = None
    unit: Optional[str] = None

    @property
    def has_points(self) -> bool:
        return bool(self.points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [{"date": p.day.isoformat(), "avg": p.average} for p in self.points],
            "trend": self.trend.value if self.trend is not None else None,
            "weekly_change": self.weekly_change,
            "unit": self.unit,
        }


def _sleep_backoff(i: int) -> None:
    """
    Sleep using a small exponential backoff.
    Sequence ~ 0.25s, 0.5s, 1s, 2s.
    """
    time.sleep(0.25 * (2**i))


def parse_trend_summary(payload: Any) -> TrendSummary:
    """
    Normalize the trends payload into a TrendSummary.
    Raises DataFetchError when the payload does not have the expected shape.
    """
    if not isinstance(payload, dict):
        raise DataFetchError(f"Unexpected trends payload: {type(payload).__name__}")

    points: List[TrendPoint] = []
    raw_points = payload.get("points") or []
    if not isinstance(raw_points, list):
        raise DataFetchError(f"Unexpected trend points: {raw_points!r}")
    for item in raw_points:
        if not isinstance(item, dict):
            raise DataFetchError(f"Unexpected trend point: {item!r}")
        when = parse_timestamp(item.get("date"))
        if when is None or item.get("avg") is None:
            raise DataFetchError(f"Trend point without date/avg: {item!r}")
        try:
            average = float(item["avg"])
        except (TypeError, ValueError) as e:
            raise DataFetchError(f"Trend point with non-numeric avg: {item!r}") from e
        points.append(TrendPoint(day=when.date(), average=average))

    trend = None
    if payload.get("trend") is not None:
        try:
            trend = Trend(payload["trend"])
        except ValueError as e:
            raise DataFetchError(f"Unknown trend value: {payload['trend']!r}") from e

    weekly_change = payload.get("weekly_change")
    if weekly_change is not None:
        try:
            weekly_change = float(weekly_change)
        except (TypeError, ValueError) as e:
            raise DataFetchError(f"Non-numeric weekly_change: {weekly_change!r}") from e

    unit = payload.get("unit")
    if unit is not None and not isinstance(unit, str):
        raise DataFetchError(f"Unexpected unit: {unit!r}")

    return TrendSummary(points=points, trend=trend, weekly_change=weekly_change, unit=unit)


class HealthLogClient:
    """
    Thin reader for the health-log API.

    Parameters
    ----------
    base_url : str, optional
        API root; defaults to $HEALTHSTATS_API_URL or DEFAULT_API_URL.
    token : str, optional
        Bearer token; defaults to $HEALTHSTATS_API_TOKEN.
    timeout : float
        Per-request timeout in seconds.
    retries : int
        Number of attempts before giving up.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        retries: int = 3,
    ):
        self.base_url = (base_url or os.getenv("HEALTHSTATS_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.token = token if token is not None else os.getenv("HEALTHSTATS_API_TOKEN")
        self.timeout = timeout
        self.retries = max(1, retries)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request_json(self, path: str) -> Any:
        """
        GET JSON with simple retry/backoff.
        Raises DataFetchError if all attempts fail.
        """
        url = f"{self.base_url}{path}"
        last_exc: Exception | None = None
        for i in range(self.retries):
            try:
                resp = requests.get(url, headers=self._headers(), timeout=self.timeout)
                resp.raise_for_status()
                return resp.json()
            except (requests.RequestException, json.JSONDecodeError, ValueError) as e:
                last_exc = e
                logger.warning(f"GET {url} failed (attempt {i + 1}/{self.retries}): {e}")
                if i + 1 < self.retries:
                    _sleep_backoff(i)
        assert last_exc is not None
        raise DataFetchError(f"Failed GET {url}: {last_exc}") from last_exc

    def fetch_measurements(self, notepad: Notepad) -> list[Measurement]:
        """Fetch every health measurement for the current user."""
        payload = self._request_json(MEASUREMENTS_PATH)
        if not isinstance(payload, list):
            raise DataFetchError(
                f"Expected a list of health logs, got {type(payload).__name__}"
            )
        if not all(isinstance(item, dict) for item in payload):
            raise DataFetchError("Expected every health log to be a JSON object")
        measurements = records_to_measurements(payload, notepad)
        logger.info(f"Fetched {len(measurements)} measurements from {self.base_url}")
        return measurements

    def fetch_trend_summary(self) -> TrendSummary:
        """Fetch the server-computed trend summary."""
        return parse_trend_summary(self._request_json(TRENDS_PATH))
