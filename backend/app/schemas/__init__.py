"""Schema exports."""

from app.schemas.field import FieldAvailability, FieldCreate, FieldRead
from app.schemas.reservation import (
    RecurringReservationResponse,
    ReservationCancelRequest,
    ReservationCancelResponse,
    ReservationCreate,
    ReservationRead,
    SkippedOccurrenceRead,
)
from app.schemas.scheduling import RecurrencePayload, TimeSlotPayload
from app.schemas.waitlist import (
    WaitlistEntryCreate,
    WaitlistEntryRead,
    WaitlistPositionRead,
    WaitlistPromoteRequest,
    WaitlistPromotionRead,
    WaitlistSweepResponse,
)

__all__ = [
    "FieldAvailability",
    "FieldCreate",
    "FieldRead",
    "RecurrencePayload",
    "RecurringReservationResponse",
    "ReservationCancelRequest",
    "ReservationCancelResponse",
    "ReservationCreate",
    "ReservationRead",
    "SkippedOccurrenceRead",
    "TimeSlotPayload",
    "WaitlistEntryCreate",
    "WaitlistEntryRead",
    "WaitlistPositionRead",
    "WaitlistPromoteRequest",
    "WaitlistPromotionRead",
    "WaitlistSweepResponse",
]
