import os
from datetime import datetime

import pytest

from healthstats.measurement import Measurement
from healthstats.metric import MetricType


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_health_logs_csv(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "health_logs.csv")


@pytest.fixture(scope="session")
def fpath_health_logs_json(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "health_logs.json")


@pytest.fixture(scope="session")
def fpath_dirty_health_logs_csv(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "health_logs_dirty.csv")


@pytest.fixture
def reference_instant() -> datetime:
    """Wednesday 2024-06-12, 20:00 (week of Sunday 2024-06-09)."""
    return datetime(2024, 6, 12, 20, 0)


@pytest.fixture
def day1() -> datetime:
    return datetime(2024, 6, 1, 8, 0)


@pytest.fixture
def make_measurement():
    """
    Factory for Measurements; `logged_at` may be a datetime or None.
    """
    counter = {"n": 0}

    def _make(metric: MetricType, value: float, logged_at, unit: str = "") -> Measurement:
        counter["n"] += 1
        return Measurement(
            id=f"m{counter['n']}",
            metric_type=metric,
            value=value,
            unit=unit,
            logged_at=logged_at,
            raw_metric_type=metric.value,
        )

    return _make

