"""Clock sources used for reminder admission."""
from __future__ import annotations

import typing as t
from datetime import datetime, timedelta


class Clock(t.Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Local wall-clock time, without timezone."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """A clock pinned to a given instant that only moves when told to."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward and return the new instant."""
        self._instant = self._instant + delta
        return self._instant
