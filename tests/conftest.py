"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports ``app.core.config`` so
the global settings object is built from them.
"""

import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("ADS_STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

from app.adapters.clock import Clock  # noqa: E402
from app.adapters.storage.in_memory import InMemoryKeyValueStore  # noqa: E402


class FakeClock(Clock):
    """Deterministic clock driven by the test."""

    def __init__(self, start: datetime | None = None) -> None:
        start = start or datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)
        self.current_ms = int(start.timestamp() * 1000)

    def now(self) -> int:
        return self.current_ms

    def advance(self, seconds: float) -> None:
        self.current_ms += round(seconds * 1000)

    def advance_days(self, days: int) -> None:
        self.current_ms += int(timedelta(days=days).total_seconds() * 1000)

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()
