"""Working calendar: maps working-day offsets to concrete dates.

A calendar is a set of working weekdays minus holidays. Holidays may be
listed as single dates or as inclusive periods (court recess, office closure).
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from .exceptions import CalendarExhaustedError

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
DEFAULT_LOOKAHEAD_DAYS = 3650  # ~10 years


class HolidayPeriod(BaseModel):
    """An inclusive range of non-working dates."""

    start: date
    end: date

    @model_validator(mode="after")
    def validate_end_after_start(self) -> HolidayPeriod:
        if self.end < self.start:
            raise ValueError("end date must not be before start date")
        return self


class WorkingCalendar(BaseModel):
    """Working weekdays and holidays for one project."""

    working_weekdays: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    holidays: list[date] = Field(default_factory=list)
    holiday_periods: list[HolidayPeriod] = Field(default_factory=list)
    lookahead_days: int = Field(default=DEFAULT_LOOKAHEAD_DAYS, gt=0)

    _weekdays: frozenset[int] = PrivateAttr(default=frozenset())
    _holidays: frozenset[date] = PrivateAttr(default=frozenset())

    @field_validator("working_weekdays", mode="before")
    @classmethod
    def parse_weekdays(cls, v: Any) -> list[int]:
        """Accept weekday numbers (0=Monday) or names such as "mon" / "Monday"."""
        if v is None:
            return []
        result: list[int] = []
        for item in v:
            if isinstance(item, int):
                day = item
            else:
                key = str(item).strip().lower()[:3]
                if key not in WEEKDAY_NAMES:
                    raise ValueError(f"Unknown weekday: {item!r}")
                day = WEEKDAY_NAMES.index(key)
            if not 0 <= day <= 6:  # noqa: PLR2004 - Sunday is weekday 6
                raise ValueError(f"Weekday out of range: {item!r}")
            result.append(day)
        return sorted(set(result))

    def model_post_init(self, __context: Any) -> None:
        self._weekdays = frozenset(self.working_weekdays)
        days: set[date] = set(self.holidays)
        for period in self.holiday_periods:
            current = period.start
            while current <= period.end:
                days.add(current)
                current += timedelta(days=1)
        self._holidays = frozenset(days)

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self._weekdays and day not in self._holidays

    def next_working_day(self, day: date) -> date:
        """Return ``day`` if it is a working day, else the next one.

        Raises:
            CalendarExhaustedError: If no working day exists within the lookahead
        """
        current = day
        for _ in range(self.lookahead_days):
            if self.is_working_day(current):
                return current
            current += timedelta(days=1)
        raise CalendarExhaustedError(day, self.lookahead_days)

    def working_days(self, start: date, count: int) -> list[date]:
        """Return the first ``count`` working days on or after ``start``."""
        result: list[date] = []
        current = start
        while len(result) < count:
            current = self.next_working_day(current)
            result.append(current)
            current += timedelta(days=1)
        return result

    def add_working_days(self, start: date, days: int) -> date:
        """Return the working day ``days`` working days after ``start``.

        ``start`` is rolled forward to a working day first, so
        ``add_working_days(friday, 1)`` is the following Monday on a
        Monday-Friday calendar.
        """
        if days < 0:
            raise ValueError("add_working_days only walks forward")
        return self.working_days(start, days + 1)[-1]

    def working_days_between(self, start: date, end: date) -> int:
        """Count working days in ``[start, end)``; negative if ``end`` precedes ``start``."""
        if end < start:
            return -self.working_days_between(end, start)
        count = 0
        current = start
        while current < end:
            if self.is_working_day(current):
                count += 1
            current += timedelta(days=1)
        return count
