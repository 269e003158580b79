# rollcall/core/clock.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch(value: datetime) -> int:
    return int(as_utc(value).timestamp())


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        # whole seconds so stored timestamps match what goes into tokens
        return datetime.now(timezone.utc).replace(microsecond=0)


class FrozenClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, start: datetime | None = None):
        self._now = as_utc(start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = as_utc(value)

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now
