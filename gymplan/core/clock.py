from __future__ import annotations

from datetime import date
from typing import Protocol


class Clock(Protocol):
    def today(self) -> date: ...


class SystemClock:
    """Local calendar date of the machine running the app."""

    def today(self) -> date:
        return date.today()


class FixedClock:
    """
    Clock pinned to a given day. Used by tests and by one-off recalculations
    ("what did the list look like on date X").
    """

    def __init__(self, current: date) -> None:
        self.current = current

    def today(self) -> date:
        return self.current

    def set(self, current: date) -> None:
        self.current = current
