"""Clock abstraction for testable time.

WallClock: real wall-clock time
SimClock: deterministic simulated time (tests, demo runs)

Domain rules never call datetime.now() directly; expiry windows and
movement date checks go through an injected clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class IClock(Protocol):
    """Clock interface used by all time-dependent code."""

    def now(self) -> datetime:
        """Current time as timezone-aware UTC datetime."""
        ...


class WallClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class SimClock:
    """Simulated clock.

    Time advances only when explicitly moved by the caller.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._time = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._time

    def set_time(self, t: datetime) -> None:
        """Move time forward. Must be monotonically increasing."""
        if t < self._time:
            raise ValueError(
                f"SimClock cannot go backwards: {t} < {self._time}"
            )
        self._time = t

    def advance(self, **delta: float) -> None:
        """Advance time by a ``timedelta`` expressed as keyword arguments."""
        self.set_time(self._time + timedelta(**delta))
