"""Bookable time slot value object."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time

from app.core.errors import InvalidSlot


@dataclass(slots=True, frozen=True, order=True)
class TimeSlot:
    """A date plus a half-open ``[start_time, end_time)`` time-of-day window."""

    date: date
    start_time: time
    end_time: time

    def __post_init__(self) -> None:
        if self.start_time >= self.end_time:
            raise InvalidSlot(
                f"Slot start {self.start_time.isoformat()} must be before "
                f"end {self.end_time.isoformat()}"
            )

    def overlaps(self, other: TimeSlot) -> bool:
        """Return True when both slots share a date and their windows intersect.

        Touching boundaries (one ends exactly when the other starts) do not
        overlap.
        """
        if self.date != other.date:
            return False
        return self.start_time < other.end_time and other.start_time < self.end_time

    def on(self, day: date) -> TimeSlot:
        """Return the same time window moved to ``day``."""
        return TimeSlot(day, self.start_time, self.end_time)

    def __str__(self) -> str:
        return (
            f"{self.date.isoformat()} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"
        )
