"""Field schemas."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.models.field import FieldStatus
from app.schemas.reservation import ReservationRead


class FieldBase(BaseModel):
    """Shared field attributes."""

    name: str = Field(min_length=1, max_length=255)
    field_type: str | None = Field(default=None, max_length=64)
    status: FieldStatus = FieldStatus.AVAILABLE
    address: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    hourly_rate: Decimal | None = Field(default=None, ge=Decimal("0"))


class FieldCreate(FieldBase):
    """Payload for creating a field."""


class FieldRead(FieldBase):
    """Serialized field response."""

    id: uuid.UUID
    account_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FieldAvailability(BaseModel):
    """Active reservations occupying a field on one day."""

    field_id: uuid.UUID
    date: date
    reservations: list[ReservationRead]
