"""Overlap detection between a candidate slot and a field's reservations."""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reservation import (
    ACTIVE_RESERVATION_STATUSES,
    Reservation,
)
from app.services.time_slot import TimeSlot


def _overlap_query(
    field_id: uuid.UUID,
    slot: TimeSlot,
    exclude_reservation_id: uuid.UUID | None,
):
    stmt = select(Reservation).where(
        Reservation.field_id == field_id,
        Reservation.date == slot.date,
        Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        Reservation.start_time < slot.end_time,
        Reservation.end_time > slot.start_time,
    )
    if exclude_reservation_id is not None:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)
    return stmt


async def find_conflicts(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    exclude_reservation_id: uuid.UUID | None = None,
) -> Sequence[Reservation]:
    """Return active reservations on ``field_id`` that overlap ``slot``."""
    stmt = _overlap_query(field_id, slot, exclude_reservation_id).order_by(
        Reservation.start_time
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def has_conflict(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    exclude_reservation_id: uuid.UUID | None = None,
) -> bool:
    """Return True when ``slot`` cannot be booked on ``field_id``.

    This is the single availability check used before creating a reservation
    and before offering a slot from the waitlist.
    """
    stmt = _overlap_query(field_id, slot, exclude_reservation_id).limit(1)
    result = await session.execute(stmt.with_only_columns(Reservation.id))
    return result.first() is not None
