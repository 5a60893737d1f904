"""Domain errors raised by the scheduling and waitlist services.

Every error subclasses ``ValueError`` so callers that only care about
"bad request" can keep catching ``ValueError``; routers that need to tell a
conflict apart from malformed input match on the concrete class instead.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from app.services.time_slot import TimeSlot


class SchedulingError(ValueError):
    """Base class for recoverable scheduling failures."""

    code = "scheduling_error"


class InvalidSlot(SchedulingError):
    """A time slot whose start is not strictly before its end."""

    code = "invalid_slot"


class InvalidPattern(SchedulingError):
    """A recurrence pattern that cannot be expanded."""

    code = "invalid_pattern"


class RecurrenceTooLarge(SchedulingError):
    """The pattern would produce more candidates than the hard cap."""

    code = "recurrence_too_large"

    def __init__(self, requested: int, limit: int) -> None:
        super().__init__(
            f"Recurrence would generate {requested}+ occurrences; limit is {limit}"
        )
        self.requested = requested
        self.limit = limit


class SlotConflict(SchedulingError):
    """The slot overlaps an active reservation on the same field."""

    code = "slot_conflict"

    def __init__(
        self,
        slot: "TimeSlot",
        conflicting_ids: Sequence[uuid.UUID] = (),
    ) -> None:
        super().__init__(f"Time slot {slot} is already reserved")
        self.slot = slot
        self.conflicting_ids = list(conflicting_ids)


class AllOccurrencesConflicted(SchedulingError):
    """Every occurrence of a recurring booking was rejected."""

    code = "all_occurrences_conflicted"

    def __init__(self, attempted: int) -> None:
        super().__init__(
            f"All {attempted} recurring occurrences conflict with existing reservations"
        )
        self.attempted = attempted


class DuplicateEntry(SchedulingError):
    """The user already waits for this field and slot."""

    code = "duplicate_entry"


class SlotAvailable(SchedulingError):
    """A waitlist request for a slot that can be booked directly."""

    code = "slot_available"


class FieldUnavailable(SchedulingError):
    """The field is missing, closed, or cannot host the request."""

    code = "field_unavailable"


class InvalidTransition(SchedulingError):
    """A reservation or waitlist status change that is not allowed."""

    code = "invalid_transition"
