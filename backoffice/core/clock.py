"""
Clock abstraction so "now" and "today" can be pinned in tests.
"""
from datetime import date, datetime, timedelta
from typing import Optional


class Clock:
    """Source of the current time for the service layer."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Clock frozen at a given instant; `advance` moves it forward."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        self.current = self.current + timedelta(days=days, seconds=seconds)

    def set(self, current: datetime) -> None:
        self.current = current


_system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency; overridden in tests with a FixedClock."""
    return _system_clock


def resolve_clock(clock: Optional[Clock]) -> Clock:
    return clock if clock is not None else _system_clock
