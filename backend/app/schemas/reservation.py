"""Pydantic schemas for reservations."""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.reservation import ReservationStatus
from app.schemas.scheduling import RecurrencePayload, TimeSlotPayload
from app.schemas.waitlist import WaitlistPromotionRead
from app.services.reservation_service import RecurringBookingResult


class ReservationCreate(TimeSlotPayload):
    """Payload for booking a slot once, or repeatedly when ``recurrence`` is set."""

    field_id: uuid.UUID
    team_id: uuid.UUID | None = None
    purpose: str | None = Field(default=None, max_length=255)
    attendees: int | None = Field(default=None, ge=1)
    notes: str | None = Field(default=None, max_length=1024)
    recurrence: RecurrencePayload | None = None


class ReservationRead(TimeSlotPayload):
    """Serialized reservation representation."""

    id: uuid.UUID
    account_id: uuid.UUID
    field_id: uuid.UUID
    user_id: uuid.UUID
    team_id: uuid.UUID | None = None
    series_id: uuid.UUID | None = None
    status: ReservationStatus
    purpose: str | None = None
    attendees: int | None = None
    notes: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: uuid.UUID | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SkippedOccurrenceRead(TimeSlotPayload):
    """An occurrence of a recurring booking that was not created."""

    reason: str
    conflicting_reservation_ids: list[uuid.UUID] = Field(default_factory=list)


class RecurringReservationResponse(BaseModel):
    """Result of a recurring booking; partial success is still a success."""

    series_id: uuid.UUID
    created: list[ReservationRead]
    skipped: list[SkippedOccurrenceRead]
    is_partial: bool

    @classmethod
    def from_result(
        cls, result: RecurringBookingResult
    ) -> "RecurringReservationResponse":
        return cls(
            series_id=result.series_id,
            created=[ReservationRead.model_validate(item) for item in result.created],
            skipped=[
                SkippedOccurrenceRead(
                    date=item.slot.date,
                    start_time=item.slot.start_time,
                    end_time=item.slot.end_time,
                    reason=item.reason,
                    conflicting_reservation_ids=list(item.conflicting_reservation_ids),
                )
                for item in result.skipped
            ],
            is_partial=result.is_partial,
        )


class ReservationCancelRequest(BaseModel):
    """Payload for cancelling a reservation."""

    reason: str | None = Field(default=None, max_length=1024)


class ReservationCancelResponse(BaseModel):
    """The cancelled reservation and the waitlist offers it triggered."""

    reservation: ReservationRead
    promotions: list[WaitlistPromotionRead] = Field(default_factory=list)
