"""Scheduling-related schemas."""

from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel, Field

from app.services.recurrence import Frequency, RecurrencePattern
from app.services.time_slot import TimeSlot


class TimeSlotPayload(BaseModel):
    """A date plus a time-of-day window."""

    date: date
    start_time: time
    end_time: time

    def to_slot(self) -> TimeSlot:
        """Build the domain slot; raises ``InvalidSlot`` for an empty window."""
        return TimeSlot(self.date, self.start_time, self.end_time)


class RecurrencePayload(BaseModel):
    """How a base slot repeats."""

    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    count: int | None = Field(default=None, ge=1)
    until: date | None = None
    days_of_week: list[int] = Field(default_factory=list)
    exclude_dates: list[date] = Field(default_factory=list)

    def to_pattern(self, base_slot: TimeSlot) -> RecurrencePattern:
        """Build the domain pattern; raises ``InvalidPattern`` when inconsistent."""
        return RecurrencePattern(
            base_slot=base_slot,
            frequency=self.frequency,
            interval=self.interval,
            count=self.count,
            until=self.until,
            days_of_week=frozenset(self.days_of_week),
            exclude_dates=frozenset(self.exclude_dates),
        )
