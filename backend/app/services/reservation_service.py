"""Reservation scheduling service helpers."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import (
    AllOccurrencesConflicted,
    FieldUnavailable,
    InvalidPattern,
    InvalidTransition,
    SlotConflict,
)
from app.models.field import Field, FieldStatus
from app.models.reservation import (
    ACTIVE_RESERVATION_STATUSES,
    Reservation,
    ReservationStatus,
)
from app.services import audit_service, conflict_service
from app.services.field_lock import field_lock
from app.services.recurrence import RecurrencePattern, expand
from app.services.time_slot import TimeSlot

logger = logging.getLogger(__name__)

_ALLOWED_STATUS_TRANSITIONS: dict[ReservationStatus, set[ReservationStatus]] = {
    ReservationStatus.PENDING: {
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    },
    ReservationStatus.CONFIRMED: {
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
    },
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
}


@dataclass(slots=True, frozen=True)
class SkippedOccurrence:
    """An occurrence of a recurring booking that was not created."""

    slot: TimeSlot
    reason: str
    conflicting_reservation_ids: tuple[uuid.UUID, ...] = ()


@dataclass(slots=True)
class RecurringBookingResult:
    """Outcome of a recurring booking; skipped occurrences are not errors."""

    series_id: uuid.UUID
    created: list[Reservation] = field(default_factory=list)
    skipped: list[SkippedOccurrence] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped)


def _ensure_bookable(
    field_row: Field | None,
    *,
    account_id: uuid.UUID,
    attendees: int | None,
) -> Field:
    if field_row is None or field_row.account_id != account_id:
        raise FieldUnavailable("Field not found for account")
    if field_row.status is not FieldStatus.AVAILABLE:
        raise FieldUnavailable("Field is not available for booking")
    if (
        attendees is not None
        and field_row.capacity is not None
        and attendees > field_row.capacity
    ):
        raise FieldUnavailable(f"Field capacity is {field_row.capacity} people")
    return field_row


async def insert_reservation_locked(
    session: AsyncSession,
    *,
    field_row: Field | None,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    slot: TimeSlot,
    status: ReservationStatus = ReservationStatus.PENDING,
    team_id: uuid.UUID | None = None,
    series_id: uuid.UUID | None = None,
    purpose: str | None = None,
    attendees: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Reservation:
    """Check ``slot`` and stage a reservation; the caller holds the field lock.

    Nothing is committed here. Raises ``SlotConflict`` when the slot overlaps
    an active reservation on the field.
    """
    checked = _ensure_bookable(field_row, account_id=account_id, attendees=attendees)
    conflicts = await conflict_service.find_conflicts(
        session, field_id=checked.id, slot=slot
    )
    if conflicts:
        raise SlotConflict(slot, [reservation.id for reservation in conflicts])

    reservation = Reservation(
        account_id=account_id,
        field_id=checked.id,
        user_id=user_id,
        team_id=team_id,
        series_id=series_id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        status=status,
        purpose=purpose,
        attendees=attendees,
        notes=notes,
    )
    if status is ReservationStatus.CONFIRMED:
        reservation.confirmed_at = now or datetime.now(UTC)
    session.add(reservation)
    await session.flush()
    return reservation


async def _book_slot(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID,
    user_id: uuid.UUID,
    slot: TimeSlot,
    audit: bool,
    **options,
) -> Reservation:
    async with field_lock(session, field_id) as field_row:
        reservation = await insert_reservation_locked(
            session,
            field_row=field_row,
            account_id=account_id,
            user_id=user_id,
            slot=slot,
            **options,
        )
        if audit:
            await audit_service.record_event(
                session,
                event_type="reservation.created",
                account_id=account_id,
                user_id=user_id,
                description=f"Reservation created for {slot}",
                payload={
                    "reservation_id": str(reservation.id),
                    "field_id": str(field_id),
                },
                commit=False,
            )
        await session.commit()
    return reservation


async def book_once(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID,
    user_id: uuid.UUID,
    slot: TimeSlot,
    team_id: uuid.UUID | None = None,
    purpose: str | None = None,
    attendees: int | None = None,
    notes: str | None = None,
) -> Reservation:
    """Create a pending reservation or raise ``SlotConflict`` without writing."""
    return await _book_slot(
        session,
        account_id=account_id,
        field_id=field_id,
        user_id=user_id,
        slot=slot,
        audit=True,
        team_id=team_id,
        purpose=purpose,
        attendees=attendees,
        notes=notes,
    )


async def book_recurring(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID,
    user_id: uuid.UUID,
    pattern: RecurrencePattern,
    team_id: uuid.UUID | None = None,
    purpose: str | None = None,
    attendees: int | None = None,
    notes: str | None = None,
    max_occurrences: int | None = None,
) -> RecurringBookingResult:
    """Book every occurrence of ``pattern`` independently.

    Occurrences that conflict are reported in ``skipped`` and the rest are
    still created; each occurrence commits on its own. When nothing could be
    created ``AllOccurrencesConflicted`` is raised.
    """
    if max_occurrences is None:
        max_occurrences = get_settings().recurrence_max_occurrences
    slots = expand(pattern, max_occurrences=max_occurrences)
    if not slots:
        raise InvalidPattern("Pattern produces no occurrences after exclusions")

    field_row = await session.get(Field, field_id)
    _ensure_bookable(field_row, account_id=account_id, attendees=attendees)

    result = RecurringBookingResult(series_id=uuid.uuid4())
    for slot in slots:
        try:
            reservation = await _book_slot(
                session,
                account_id=account_id,
                field_id=field_id,
                user_id=user_id,
                slot=slot,
                audit=False,
                team_id=team_id,
                series_id=result.series_id,
                purpose=purpose,
                attendees=attendees,
                notes=notes,
            )
        except SlotConflict as exc:
            result.skipped.append(
                SkippedOccurrence(
                    slot=slot,
                    reason=SlotConflict.code,
                    conflicting_reservation_ids=tuple(exc.conflicting_ids),
                )
            )
            continue
        result.created.append(reservation)

    if not result.created:
        raise AllOccurrencesConflicted(len(slots))

    logger.info(
        "Recurring booking %s on field %s: %d created, %d skipped",
        result.series_id,
        field_id,
        len(result.created),
        len(result.skipped),
    )
    await audit_service.record_event(
        session,
        event_type="reservation.recurring_created",
        account_id=account_id,
        user_id=user_id,
        description="Recurring reservations created",
        payload={
            "series_id": str(result.series_id),
            "field_id": str(field_id),
            "created": len(result.created),
            "skipped": [str(item.slot) for item in result.skipped],
        },
    )
    return result


async def get_reservation(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    reservation_id: uuid.UUID,
) -> Reservation | None:
    reservation = await session.get(Reservation, reservation_id)
    if reservation is None or reservation.account_id != account_id:
        return None
    return reservation


async def list_reservations(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    status: ReservationStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[Reservation]:
    stmt = (
        select(Reservation)
        .where(Reservation.account_id == account_id)
        .order_by(Reservation.date, Reservation.start_time, Reservation.id)
    )
    if field_id:
        stmt = stmt.where(Reservation.field_id == field_id)
    if user_id:
        stmt = stmt.where(Reservation.user_id == user_id)
    if status:
        stmt = stmt.where(Reservation.status == status)
    if date_from:
        stmt = stmt.where(Reservation.date >= date_from)
    if date_to:
        stmt = stmt.where(Reservation.date <= date_to)
    result = await session.execute(stmt.offset(skip).limit(limit))
    return result.scalars().all()


async def list_field_reservations(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    day: date,
) -> Sequence[Reservation]:
    """Return the active reservations that occupy ``field_id`` on ``day``."""
    result = await session.execute(
        select(Reservation)
        .where(
            Reservation.field_id == field_id,
            Reservation.date == day,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        )
        .order_by(Reservation.start_time)
    )
    return result.scalars().all()


def _validate_status_transition(
    current: ReservationStatus, target: ReservationStatus
) -> None:
    if target == current:
        return
    allowed = _ALLOWED_STATUS_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransition(
            f"Invalid status transition from {current.value} to {target.value}"
        )


async def update_status(
    session: AsyncSession,
    *,
    reservation: Reservation,
    status: ReservationStatus,
    user_id: uuid.UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> Reservation:
    """Move ``reservation`` to ``status`` following the allowed lifecycle.

    Cancelling frees the slot; the caller is expected to run waitlist
    promotion for it afterwards.
    """
    if status == reservation.status:
        return reservation
    _validate_status_transition(reservation.status, status)
    now = now or datetime.now(UTC)

    reservation.status = status
    if status is ReservationStatus.CONFIRMED:
        reservation.confirmed_at = now
    elif status is ReservationStatus.CANCELLED:
        reservation.cancelled_at = now
        reservation.cancelled_by = user_id
        reservation.cancellation_reason = reason

    await audit_service.record_event(
        session,
        event_type=f"reservation.{status.value}",
        account_id=reservation.account_id,
        user_id=user_id,
        description=f"Reservation {status.value}",
        payload={"reservation_id": str(reservation.id), "reason": reason},
        commit=False,
    )
    await session.commit()
    return reservation


async def confirm_reservation(
    session: AsyncSession,
    *,
    reservation: Reservation,
    user_id: uuid.UUID,
    now: datetime | None = None,
) -> Reservation:
    return await update_status(
        session,
        reservation=reservation,
        status=ReservationStatus.CONFIRMED,
        user_id=user_id,
        now=now,
    )


async def cancel_reservation(
    session: AsyncSession,
    *,
    reservation: Reservation,
    cancelled_by: uuid.UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> Reservation:
    if reservation.status is ReservationStatus.CANCELLED:
        raise InvalidTransition("Reservation is already cancelled")
    return await update_status(
        session,
        reservation=reservation,
        status=ReservationStatus.CANCELLED,
        user_id=cancelled_by,
        reason=reason,
        now=now,
    )


async def complete_reservation(
    session: AsyncSession,
    *,
    reservation: Reservation,
    user_id: uuid.UUID,
    now: datetime | None = None,
) -> Reservation:
    return await update_status(
        session,
        reservation=reservation,
        status=ReservationStatus.COMPLETED,
        user_id=user_id,
        now=now,
    )
