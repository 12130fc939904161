"""
MOA Core Time — Injectable Clock
==================================
Engine code never calls datetime.now() directly.
Lock expiry, merge timestamps and payment dates all read
the clock handed to the service, or the process default.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Protocol


class Clock(Protocol):
    def now_utc(self) -> datetime:
        ...  # pragma: no cover


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Stands still until told to move.

        clock = FixedClock(datetime(2026, 9, 1, tzinfo=timezone.utc))
        clock.advance(31)  # past a 30s lock TTL
    """

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime.")
        self._at = at

    def now_utc(self) -> datetime:
        return self._at

    def advance(self, seconds: float) -> None:
        self._at += timedelta(seconds=seconds)


_default_clock: Clock = SystemClock()


def get_default_clock() -> Clock:
    return _default_clock


def set_default_clock(clock: Clock) -> None:
    global _default_clock
    _default_clock = clock


@contextmanager
def default_clock(clock: Clock) -> Iterator[Clock]:
    """Swap the process clock for the duration of a block."""
    previous = get_default_clock()
    set_default_clock(clock)
    try:
        yield clock
    finally:
        set_default_clock(previous)


def now_utc() -> datetime:
    return _default_clock.now_utc()
