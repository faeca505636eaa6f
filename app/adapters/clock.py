"""Time sources for the frequency policy.

The policy never reads the wall clock directly; it is handed a Clock so tests
can drive time explicitly.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.errors import ValidationAppError


class Clock(ABC):
    """Interface for time sources.

    Attributes:
        tz: Time zone used to derive the calendar day from ``now()``.
    """

    tz: tzinfo = timezone.utc

    @abstractmethod
    def now(self) -> int:
        """Return the current time as UNIX epoch milliseconds."""
        raise NotImplementedError

    def today(self) -> date:
        """Calendar date of ``now()`` in this clock's time zone."""
        return datetime.fromtimestamp(self.now() / 1000, tz=self.tz).date()


class SystemClock(Clock):
    """Wall-clock time source."""

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self.tz = tz

    def now(self) -> int:
        return time.time_ns() // 1_000_000


def resolve_timezone(name: str) -> tzinfo:
    """Resolve an IANA time zone name.

    Raises:
        ValidationAppError: If the name is not a known time zone.
    """
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationAppError(
            code="ads_unknown_timezone",
            message=f"Unknown time zone: '{name}'",
            details={"hint": "Set ADS_TIMEZONE to an IANA name such as 'Africa/Johannesburg'"},
        ) from exc
