"""Tests for single and recurring reservation booking."""

from __future__ import annotations

import uuid
from datetime import date, time

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AllOccurrencesConflicted,
    InvalidPattern,
    FieldUnavailable,
    InvalidTransition,
    RecurrenceTooLarge,
    SlotConflict,
)
from app.models import AuditEvent, Reservation, ReservationStatus
from app.services import conflict_service, reservation_service
from app.services.recurrence import Frequency, RecurrencePattern
from app.services.time_slot import TimeSlot

pytestmark = pytest.mark.asyncio

MONDAY = date(2024, 1, 1)
EVENING = TimeSlot(MONDAY, time(18, 0), time(19, 0))


async def _count_reservations(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(Reservation.id)))
    return int(result.scalar_one())


async def _book(
    session: AsyncSession,
    field_setup: dict[str, uuid.UUID],
    slot: TimeSlot = EVENING,
    *,
    field_key: str = "field_id",
    **kwargs,
) -> Reservation:
    return await reservation_service.book_once(
        session,
        account_id=field_setup["account_id"],
        field_id=field_setup[field_key],
        user_id=kwargs.pop("user_id", uuid.uuid4()),
        slot=slot,
        **kwargs,
    )


async def test_book_once_creates_pending_reservation(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    user_id = uuid.uuid4()
    reservation = await _book(session, field_setup, user_id=user_id, purpose="Practice")

    assert reservation.status is ReservationStatus.PENDING
    assert reservation.user_id == user_id
    assert reservation.slot == EVENING
    assert reservation.series_id is None

    events = await session.execute(
        select(AuditEvent).where(AuditEvent.event_type == "reservation.created")
    )
    assert len(events.scalars().all()) == 1


async def test_overlap_is_rejected_without_writing(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    existing = await _book(session, field_setup)
    with pytest.raises(SlotConflict) as excinfo:
        await _book(
            session, field_setup, TimeSlot(MONDAY, time(18, 30), time(19, 30))
        )
    assert excinfo.value.conflicting_ids == [existing.id]
    assert await _count_reservations(session) == 1


async def test_touching_slots_and_other_fields_do_not_conflict(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    await _book(session, field_setup)
    await _book(session, field_setup, TimeSlot(MONDAY, time(19, 0), time(20, 0)))
    await _book(session, field_setup, TimeSlot(MONDAY, time(17, 0), time(18, 0)))
    await _book(session, field_setup, field_key="second_field_id")
    await _book(session, field_setup, EVENING.on(date(2024, 1, 2)))
    assert await _count_reservations(session) == 5


async def test_cancelled_reservation_frees_the_slot(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    first = await _book(session, field_setup)
    await reservation_service.cancel_reservation(
        session, reservation=first, cancelled_by=first.user_id, reason="Rain"
    )
    assert not await conflict_service.has_conflict(
        session, field_id=field_setup["field_id"], slot=EVENING
    )
    second = await _book(session, field_setup)
    assert second.status is ReservationStatus.PENDING


async def test_conflict_check_can_exclude_a_reservation(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    existing = await _book(session, field_setup)
    assert await conflict_service.has_conflict(
        session, field_id=field_setup["field_id"], slot=EVENING
    )
    assert not await conflict_service.has_conflict(
        session,
        field_id=field_setup["field_id"],
        slot=EVENING,
        exclude_reservation_id=existing.id,
    )


@pytest.mark.parametrize("field_key", ["closed_field_id", "foreign_field_id"])
async def test_unbookable_fields_are_rejected(
    session: AsyncSession, field_setup: dict[str, uuid.UUID], field_key: str
) -> None:
    with pytest.raises(FieldUnavailable):
        await _book(session, field_setup, field_key=field_key)


async def test_attendees_above_capacity_are_rejected(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    with pytest.raises(FieldUnavailable):
        await _book(session, field_setup, field_key="small_field_id", attendees=11)
    reservation = await _book(
        session, field_setup, field_key="small_field_id", attendees=10
    )
    assert reservation.attendees == 10


async def test_recurring_booking_skips_conflicts(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    blocker = await _book(session, field_setup, EVENING.on(date(2024, 1, 8)))
    pattern = RecurrencePattern(
        base_slot=EVENING, frequency=Frequency.WEEKLY, count=4
    )
    result = await reservation_service.book_recurring(
        session,
        account_id=field_setup["account_id"],
        field_id=field_setup["field_id"],
        user_id=uuid.uuid4(),
        pattern=pattern,
    )

    assert [item.date for item in result.created] == [
        date(2024, 1, 1),
        date(2024, 1, 15),
        date(2024, 1, 22),
    ]
    assert result.is_partial
    assert len(result.skipped) == 1
    skipped = result.skipped[0]
    assert skipped.slot.date == date(2024, 1, 8)
    assert skipped.reason == "slot_conflict"
    assert skipped.conflicting_reservation_ids == (blocker.id,)
    assert {item.series_id for item in result.created} == {result.series_id}


async def test_recurring_booking_without_conflicts_is_complete(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    pattern = RecurrencePattern(
        base_slot=TimeSlot(date(2024, 1, 31), time(9, 0), time(10, 0)),
        frequency=Frequency.MONTHLY,
        until=date(2024, 5, 31),
    )
    result = await reservation_service.book_recurring(
        session,
        account_id=field_setup["account_id"],
        field_id=field_setup["field_id"],
        user_id=uuid.uuid4(),
        pattern=pattern,
    )
    assert not result.is_partial
    assert len(result.created) == 3


async def test_recurring_booking_all_conflicted(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    for week in range(2):
        await _book(session, field_setup, EVENING.on(date(2024, 1, 1 + 7 * week)))
    pattern = RecurrencePattern(
        base_slot=EVENING, frequency=Frequency.WEEKLY, count=2
    )
    with pytest.raises(AllOccurrencesConflicted):
        await reservation_service.book_recurring(
            session,
            account_id=field_setup["account_id"],
            field_id=field_setup["field_id"],
            user_id=uuid.uuid4(),
            pattern=pattern,
        )
    assert await _count_reservations(session) == 2


async def test_recurring_booking_over_cap_writes_nothing(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    pattern = RecurrencePattern(
        base_slot=EVENING, frequency=Frequency.DAILY, count=400
    )
    with pytest.raises(RecurrenceTooLarge):
        await reservation_service.book_recurring(
            session,
            account_id=field_setup["account_id"],
            field_id=field_setup["field_id"],
            user_id=uuid.uuid4(),
            pattern=pattern,
        )
    assert await _count_reservations(session) == 0


async def test_recurring_booking_with_every_date_excluded_is_invalid(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    pattern = RecurrencePattern(
        base_slot=EVENING,
        frequency=Frequency.DAILY,
        count=2,
        exclude_dates=frozenset({date(2024, 1, 1), date(2024, 1, 2)}),
    )
    with pytest.raises(InvalidPattern):
        await reservation_service.book_recurring(
            session,
            account_id=field_setup["account_id"],
            field_id=field_setup["field_id"],
            user_id=uuid.uuid4(),
            pattern=pattern,
        )
    assert await _count_reservations(session) == 0


async def test_status_lifecycle(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    manager_id = uuid.uuid4()
    reservation = await _book(session, field_setup)

    with pytest.raises(InvalidTransition):
        await reservation_service.complete_reservation(
            session, reservation=reservation, user_id=manager_id
        )

    reservation = await reservation_service.confirm_reservation(
        session, reservation=reservation, user_id=manager_id
    )
    assert reservation.status is ReservationStatus.CONFIRMED
    assert reservation.confirmed_at is not None

    reservation = await reservation_service.cancel_reservation(
        session,
        reservation=reservation,
        cancelled_by=manager_id,
        reason="Field maintenance",
    )
    assert reservation.status is ReservationStatus.CANCELLED
    assert reservation.cancelled_by == manager_id
    assert reservation.cancellation_reason == "Field maintenance"

    with pytest.raises(InvalidTransition):
        await reservation_service.cancel_reservation(
            session, reservation=reservation, cancelled_by=manager_id
        )
    with pytest.raises(InvalidTransition):
        await reservation_service.confirm_reservation(
            session, reservation=reservation, user_id=manager_id
        )


async def test_list_reservations_by_field_and_range(
    session: AsyncSession, field_setup: dict[str, uuid.UUID]
) -> None:
    for offset in (2, 0, 1):
        await _book(session, field_setup, EVENING.on(date(2024, 1, 1 + offset)))
    await _book(session, field_setup, field_key="second_field_id")

    reservations = await reservation_service.list_reservations(
        session,
        account_id=field_setup["account_id"],
        field_id=field_setup["field_id"],
        date_from=date(2024, 1, 2),
        date_to=date(2024, 1, 3),
    )
    assert [item.date for item in reservations] == [date(2024, 1, 2), date(2024, 1, 3)]

    day = await reservation_service.list_field_reservations(
        session, field_id=field_setup["field_id"], day=MONDAY
    )
    assert [item.slot for item in day] == [EVENING]
