"""Clock abstraction for time-dependent queue behaviour.

WallClock: real time (services)
ManualClock: time that only moves when told to (tests, local replay)

Visibility timeouts are measured on ``monotonic()``; message timestamps
use ``now()``.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .ids import utc_now


class IClock(Protocol):
    """Clock interface used by all time-dependent code."""

    def now(self) -> datetime:
        """Current time as timezone-aware UTC datetime."""
        ...

    def monotonic(self) -> float:
        """Seconds on a clock that never goes backwards."""
        ...


class WallClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that advances only when explicitly told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, seconds: float) -> None:
        """Move time forward. Must not be negative."""
        if seconds < 0:
            raise ValueError(f"ManualClock cannot go backwards: {seconds}")
        self._elapsed += seconds
