"""Waitlist entries queued for an occupied field slot."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Time,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from app.models.field import Field
    from app.models.reservation import Reservation
    from app.services.time_slot import TimeSlot


class WaitlistStatus(str, enum.Enum):
    """Lifecycle of waitlist entries."""

    OPEN = "open"
    OFFERED = "offered"
    CONVERTED = "converted"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"


LIVE_WAITLIST_STATUSES = frozenset({WaitlistStatus.OPEN, WaitlistStatus.OFFERED})


class WaitlistEntry(TimestampMixin, Base):
    """A user's request to be offered a slot if it frees up."""

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index(
            "ix_waitlist_queue",
            "field_id",
            "desired_date",
            "desired_start_time",
            "desired_end_time",
            "status",
        ),
        Index("ix_waitlist_user", "user_id"),
        Index(
            "ux_waitlist_user_slot_live",
            "user_id",
            "field_id",
            "desired_date",
            "desired_start_time",
            "desired_end_time",
            unique=True,
            postgresql_where=text("status IN ('OPEN', 'OFFERED')"),
            sqlite_where=text("status IN ('OPEN', 'OFFERED')"),
        ),
        CheckConstraint(
            "desired_start_time < desired_end_time", name="valid_waitlist_time"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    field_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("fields.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    desired_date: Mapped[date] = mapped_column(Date, nullable=False)
    desired_start_time: Mapped[time] = mapped_column(Time, nullable=False)
    desired_end_time: Mapped[time] = mapped_column(Time, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[WaitlistStatus] = mapped_column(
        Enum(WaitlistStatus), nullable=False, default=WaitlistStatus.OPEN
    )
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    converted_reservation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True
    )

    field: Mapped["Field"] = relationship("Field")
    converted_reservation: Mapped["Reservation | None"] = relationship(
        "Reservation", foreign_keys=[converted_reservation_id]
    )

    @property
    def desired_slot(self) -> "TimeSlot":
        from app.services.time_slot import TimeSlot

        return TimeSlot(
            self.desired_date, self.desired_start_time, self.desired_end_time
        )
