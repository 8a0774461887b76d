"""
Time source for the billing engine.

Every service asks its clock for "now" instead of reading the wall clock, so a
batch sweep sees one consistent date and tests can pin time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Optional, Union

from django.utils import timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return timezone.localdate(self.now())


class SystemClock(Clock):
    def now(self) -> datetime:
        return timezone.now()


class FixedClock(Clock):
    """Clock pinned to a moment; only moves when told to."""

    def __init__(self, current: Optional[Union[datetime, date]] = None):
        self._current = self._coerce(current or timezone.now())

    @staticmethod
    def _coerce(value: Union[datetime, date]) -> datetime:
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day, 12, 0)
        if timezone.is_naive(value):
            value = timezone.make_aware(value)
        return value

    def now(self) -> datetime:
        return self._current

    def set(self, value: Union[datetime, date]) -> None:
        self._current = self._coerce(value)

    def advance(self, days: int = 0, **kwargs) -> None:
        self._current = self._current + timedelta(days=days, **kwargs)
