"""Reservation models."""
from __future__ import annotations

import enum
import uuid
import datetime as dt
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from app.models.field import Field
    from app.services.time_slot import TimeSlot


class ReservationStatus(str, enum.Enum):
    """Lifecycle states for reservations."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_RESERVATION_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


class Reservation(TimestampMixin, Base):
    """A booked time slot on one field."""

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_field_date", "field_id", "date"),
        Index("ix_reservations_series", "series_id"),
        Index("ix_reservations_user", "user_id"),
        CheckConstraint("start_time < end_time", name="valid_reservation_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    field_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("fields.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    series_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False
    )
    purpose: Mapped[str | None] = mapped_column(String(255))
    attendees: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(String(1024))
    confirmed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(1024))

    field: Mapped["Field"] = relationship("Field", back_populates="reservations")

    @property
    def slot(self) -> "TimeSlot":
        from app.services.time_slot import TimeSlot

        return TimeSlot(self.date, self.start_time, self.end_time)
