"""Pydantic schemas for waitlist entries."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.waitlist_entry import WaitlistEntry, WaitlistStatus
from app.schemas.scheduling import TimeSlotPayload
from app.services.promotion_service import SweepResult, WaitlistPromotion


class WaitlistEntryCreate(TimeSlotPayload):
    """Payload for joining the waitlist of an occupied slot."""

    field_id: uuid.UUID
    priority: int = Field(default=0, ge=0)


class WaitlistEntryRead(TimeSlotPayload):
    """Serialized waitlist entry."""

    id: uuid.UUID
    account_id: uuid.UUID
    field_id: uuid.UUID
    user_id: uuid.UUID
    priority: int
    status: WaitlistStatus
    notified_at: datetime | None = None
    expires_at: datetime | None = None
    converted_reservation_id: uuid.UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_orm_entry(cls, entry: WaitlistEntry) -> "WaitlistEntryRead":
        return cls(
            id=entry.id,
            account_id=entry.account_id,
            field_id=entry.field_id,
            user_id=entry.user_id,
            date=entry.desired_date,
            start_time=entry.desired_start_time,
            end_time=entry.desired_end_time,
            priority=entry.priority,
            status=entry.status,
            notified_at=entry.notified_at,
            expires_at=entry.expires_at,
            converted_reservation_id=entry.converted_reservation_id,
            created_at=entry.created_at,
        )


class WaitlistPositionRead(BaseModel):
    """Where an entry stands in its queue."""

    entry_id: uuid.UUID
    position: int
    total_in_queue: int
    slot_available: bool


class WaitlistPromoteRequest(TimeSlotPayload):
    """Slot to offer to the next waiting user."""

    field_id: uuid.UUID


class WaitlistPromotionRead(TimeSlotPayload):
    """An offer made to a waitlisted user."""

    entry_id: uuid.UUID
    user_id: uuid.UUID
    field_id: uuid.UUID
    expires_at: datetime

    @classmethod
    def from_promotion(cls, promotion: WaitlistPromotion) -> "WaitlistPromotionRead":
        return cls(
            entry_id=promotion.entry_id,
            user_id=promotion.user_id,
            field_id=promotion.field_id,
            date=promotion.slot.date,
            start_time=promotion.slot.start_time,
            end_time=promotion.slot.end_time,
            expires_at=promotion.expires_at,
        )


class WaitlistSweepResponse(BaseModel):
    """Outcome of an expiry sweep."""

    expired: int
    promotions: list[WaitlistPromotionRead]

    @classmethod
    def from_result(cls, result: SweepResult) -> "WaitlistSweepResponse":
        return cls(
            expired=result.expired,
            promotions=[
                WaitlistPromotionRead.from_promotion(item) for item in result.promotions
            ],
        )
