"""Expansion of recurring booking patterns into concrete time slots.

The expander is pure: the same pattern always yields the same slots and no
database access happens here. A pattern is walked as a sequence of
*candidates*, one per recurrence step. A candidate may produce no occurrence:

* monthly steps that land on a month without the base day-of-month (the 31st
  in April, the 30th in February) are skipped, never clamped to month end;
* dates listed in ``exclude_dates`` are dropped.

Skipped candidates still count against a ``count`` terminator, so
``count=n`` means "n recurrence steps" and the final yield can be smaller than
``n``. The hard cap applies to candidates as well and is checked before any
slot is produced.
"""

from __future__ import annotations

import calendar
import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import MAXYEAR, date, timedelta
from itertools import count as counter
from itertools import islice, takewhile

from app.core.errors import InvalidPattern, RecurrenceTooLarge
from app.services.time_slot import TimeSlot

DEFAULT_MAX_OCCURRENCES = 365


class Frequency(str, enum.Enum):
    """Supported recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(slots=True, frozen=True)
class RecurrencePattern:
    """A base slot repeated at a fixed frequency until a terminator.

    ``days_of_week`` uses ``date.weekday()`` numbering (Monday is 0) and is
    only meaningful for weekly patterns. Exactly one of ``count`` and
    ``until`` must be given.
    """

    base_slot: TimeSlot
    frequency: Frequency
    interval: int = 1
    count: int | None = None
    until: date | None = None
    days_of_week: frozenset[int] = field(default_factory=frozenset)
    exclude_dates: frozenset[date] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequency", Frequency(self.frequency))
        object.__setattr__(self, "days_of_week", frozenset(self.days_of_week))
        object.__setattr__(self, "exclude_dates", frozenset(self.exclude_dates))

        if self.interval < 1:
            raise InvalidPattern("interval must be a positive integer")
        if (self.count is None) == (self.until is None):
            raise InvalidPattern("Exactly one of count or until must be provided")
        if self.count is not None and self.count < 1:
            raise InvalidPattern("count must be at least 1")
        if self.until is not None and self.until < self.base_slot.date:
            raise InvalidPattern("until must be on or after the first occurrence")
        if self.days_of_week:
            if self.frequency is not Frequency.WEEKLY:
                raise InvalidPattern("days_of_week is only valid for weekly patterns")
            if any(day not in range(7) for day in self.days_of_week):
                raise InvalidPattern("days_of_week values must be between 0 and 6")


def expand(
    pattern: RecurrencePattern,
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[TimeSlot]:
    """Return the ordered occurrences described by ``pattern``.

    Raises ``RecurrenceTooLarge`` when the terminator asks for more than
    ``max_occurrences`` candidates.
    """
    if pattern.count is not None:
        if pattern.count > max_occurrences:
            raise RecurrenceTooLarge(pattern.count, max_occurrences)
        candidates = list(islice(_candidates(pattern), pattern.count))
    else:
        until = pattern.until
        assert until is not None
        bounded = takewhile(lambda item: item[0] <= until, _candidates(pattern))
        candidates = list(islice(bounded, max_occurrences + 1))
        if len(candidates) > max_occurrences:
            raise RecurrenceTooLarge(len(candidates), max_occurrences)

    return [
        pattern.base_slot.on(day)
        for day in _occurrence_dates(candidates, pattern)
    ]


def _occurrence_dates(
    candidates: Iterable[tuple[date, date | None]], pattern: RecurrencePattern
) -> Iterator[date]:
    for _, day in candidates:
        if day is None or day in pattern.exclude_dates:
            continue
        if pattern.until is not None and day > pattern.until:
            continue
        yield day


def _candidates(pattern: RecurrencePattern) -> Iterator[tuple[date, date | None]]:
    """Yield ``(anchor, occurrence)`` per step; ``occurrence`` is None when skipped.

    ``anchor`` is the earliest date the step can cover and is what an
    ``until`` terminator is compared against.
    """
    if pattern.frequency is Frequency.MONTHLY:
        yield from _monthly(pattern)
    elif pattern.frequency is Frequency.WEEKLY and pattern.days_of_week:
        yield from _weekly_on_days(pattern)
    else:
        step_days = pattern.interval
        if pattern.frequency is Frequency.WEEKLY:
            step_days *= 7
        yield from _fixed_step(pattern.base_slot.date, timedelta(days=step_days))


def _fixed_step(start: date, step: timedelta) -> Iterator[tuple[date, date | None]]:
    current = start
    while True:
        yield current, current
        try:
            current += step
        except OverflowError:
            return


def _weekly_on_days(pattern: RecurrencePattern) -> Iterator[tuple[date, date | None]]:
    start = pattern.base_slot.date
    first_monday = start - timedelta(days=start.weekday())
    weekdays = sorted(pattern.days_of_week)
    for week in counter():
        try:
            week_start = first_monday + timedelta(weeks=week * pattern.interval)
        except OverflowError:
            return
        for weekday in weekdays:
            try:
                day = week_start + timedelta(days=weekday)
            except OverflowError:
                return
            if day < start:
                continue
            yield day, day


def _monthly(pattern: RecurrencePattern) -> Iterator[tuple[date, date | None]]:
    start = pattern.base_slot.date
    for step in counter():
        month_index = start.month - 1 + step * pattern.interval
        year = start.year + month_index // 12
        month = month_index % 12 + 1
        if year > MAXYEAR:
            return
        anchor = date(year, month, 1)
        if start.day > calendar.monthrange(year, month)[1]:
            yield anchor, None
        else:
            yield anchor, date(year, month, start.day)
