"""Tests for recurrence expansion."""

from __future__ import annotations

from datetime import date, time

import pytest

from app.core.errors import InvalidPattern, RecurrenceTooLarge
from app.services.recurrence import Frequency, RecurrencePattern, expand
from app.services.time_slot import TimeSlot


def _base(day: date) -> TimeSlot:
    return TimeSlot(day, time(18, 0), time(19, 0))


def _dates(pattern: RecurrencePattern, **kwargs) -> list[date]:
    return [slot.date for slot in expand(pattern, **kwargs)]


def test_weekly_count_keeps_time_window() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)), frequency=Frequency.WEEKLY, count=4
    )
    slots = expand(pattern)
    assert [slot.date for slot in slots] == [
        date(2024, 1, 1),
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
    ]
    assert all(slot.start_time == time(18, 0) for slot in slots)
    assert all(slot.end_time == time(19, 0) for slot in slots)


def test_daily_interval() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 2, 27)),
        frequency=Frequency.DAILY,
        interval=2,
        count=3,
    )
    assert _dates(pattern) == [date(2024, 2, 27), date(2024, 2, 29), date(2024, 3, 2)]


def test_biweekly_interval() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)),
        frequency="weekly",
        interval=2,
        count=3,
    )
    assert _dates(pattern) == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]


def test_monthly_skips_months_without_the_day_and_counts_them() -> None:
    """Skipped months use up a step, so count=4 from Jan 31 yields two dates.

    Feb and Apr have no 31st. Counting produced dates instead of steps would
    give three dates; the step reading keeps `count` and `until` consistent
    with the candidate cap.
    """
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 31)), frequency=Frequency.MONTHLY, count=4
    )
    assert _dates(pattern) == [date(2024, 1, 31), date(2024, 3, 31)]


def test_monthly_until_is_inclusive() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 31)),
        frequency=Frequency.MONTHLY,
        until=date(2024, 5, 31),
    )
    assert _dates(pattern) == [date(2024, 1, 31), date(2024, 3, 31), date(2024, 5, 31)]


def test_monthly_never_clamps_leap_day() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 2, 29)),
        frequency=Frequency.MONTHLY,
        interval=12,
        count=5,
    )
    assert _dates(pattern) == [date(2024, 2, 29), date(2028, 2, 29)]


def test_weekly_days_of_week_starts_at_base_date() -> None:
    # 2024-01-03 is a Wednesday; Monday is 0.
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 3)),
        frequency=Frequency.WEEKLY,
        days_of_week=frozenset({0, 2}),
        count=4,
    )
    assert _dates(pattern) == [
        date(2024, 1, 3),
        date(2024, 1, 8),
        date(2024, 1, 10),
        date(2024, 1, 15),
    ]


def test_weekly_days_of_week_until() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)),
        frequency=Frequency.WEEKLY,
        days_of_week=frozenset({1, 3}),
        until=date(2024, 1, 11),
    )
    assert _dates(pattern) == [
        date(2024, 1, 2),
        date(2024, 1, 4),
        date(2024, 1, 9),
        date(2024, 1, 11),
    ]


def test_excluded_dates_are_dropped_but_counted() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)),
        frequency=Frequency.WEEKLY,
        count=3,
        exclude_dates=frozenset({date(2024, 1, 8)}),
    )
    assert _dates(pattern) == [date(2024, 1, 1), date(2024, 1, 15)]


def test_expansion_is_deterministic() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)), frequency=Frequency.DAILY, count=10
    )
    assert expand(pattern) == expand(pattern)


def test_count_above_cap_is_rejected() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)), frequency=Frequency.DAILY, count=366
    )
    with pytest.raises(RecurrenceTooLarge) as excinfo:
        expand(pattern)
    assert excinfo.value.limit == 365


def test_until_above_cap_is_rejected() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)),
        frequency=Frequency.DAILY,
        until=date(2026, 1, 1),
    )
    with pytest.raises(RecurrenceTooLarge):
        expand(pattern)


def test_cap_is_configurable() -> None:
    pattern = RecurrencePattern(
        base_slot=_base(date(2024, 1, 1)), frequency=Frequency.WEEKLY, count=5
    )
    with pytest.raises(RecurrenceTooLarge):
        expand(pattern, max_occurrences=4)
    assert len(expand(pattern, max_occurrences=5)) == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"count": 2, "until": date(2024, 2, 1)},
        {},
        {"count": 2, "interval": 0},
        {"count": 0},
        {"until": date(2023, 12, 31)},
        {"count": 2, "days_of_week": frozenset({7})},
    ],
)
def test_invalid_weekly_patterns(kwargs: dict) -> None:
    with pytest.raises(InvalidPattern):
        RecurrencePattern(
            base_slot=_base(date(2024, 1, 1)), frequency=Frequency.WEEKLY, **kwargs
        )


def test_days_of_week_requires_weekly() -> None:
    with pytest.raises(InvalidPattern):
        RecurrencePattern(
            base_slot=_base(date(2024, 1, 1)),
            frequency=Frequency.DAILY,
            count=3,
            days_of_week=frozenset({0}),
        )
