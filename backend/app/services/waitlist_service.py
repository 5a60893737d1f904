"""Waitlist queue services.

Entries are keyed by ``(field_id, desired slot)`` and ranked by
``priority desc, created_at asc, id asc``. An entry is *live* while its status
is open or offered and its ``expires_at`` (wait deadline for open entries,
acceptance deadline for offers) has not passed.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from typing import Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import (
    DuplicateEntry,
    FieldUnavailable,
    InvalidTransition,
    SlotAvailable,
)
from app.models.field import Field
from app.models.waitlist_entry import (
    LIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistStatus,
)
from app.services import audit_service, conflict_service
from app.services.time_slot import TimeSlot

QUEUE_ORDER = (
    WaitlistEntry.priority.desc(),
    WaitlistEntry.created_at.asc(),
    WaitlistEntry.id.asc(),
)


def _coerce_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_lapsed(entry: WaitlistEntry, now: datetime) -> bool:
    """Return True when the entry's current deadline has passed."""
    if entry.expires_at is None:
        return False
    return _coerce_utc(entry.expires_at) <= _coerce_utc(now)


def _same_key(field_id: uuid.UUID, slot: TimeSlot):
    return and_(
        WaitlistEntry.field_id == field_id,
        WaitlistEntry.desired_date == slot.date,
        WaitlistEntry.desired_start_time == slot.start_time,
        WaitlistEntry.desired_end_time == slot.end_time,
    )


def _overlapping(field_id: uuid.UUID, slot: TimeSlot):
    return and_(
        WaitlistEntry.field_id == field_id,
        WaitlistEntry.desired_date == slot.date,
        WaitlistEntry.desired_start_time < slot.end_time,
        WaitlistEntry.desired_end_time > slot.start_time,
    )


def _not_lapsed(now: datetime):
    return or_(WaitlistEntry.expires_at.is_(None), WaitlistEntry.expires_at > now)


def _live(now: datetime):
    return and_(WaitlistEntry.status.in_(LIVE_WAITLIST_STATUSES), _not_lapsed(now))


async def enqueue(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID,
    user_id: uuid.UUID,
    slot: TimeSlot,
    priority: int = 0,
    now: datetime | None = None,
) -> WaitlistEntry:
    """Queue ``user_id`` for an occupied slot.

    Raises ``SlotAvailable`` when the slot can be booked directly and
    ``DuplicateEntry`` when the user already has a live entry for it.
    """
    settings = get_settings()
    now = now or datetime.now(UTC)

    field = await session.get(Field, field_id)
    if field is None or field.account_id != account_id:
        raise FieldUnavailable("Field not found for account")
    if not 0 <= priority <= settings.waitlist_max_priority:
        raise ValueError(
            f"priority must be between 0 and {settings.waitlist_max_priority}"
        )
    if not await conflict_service.has_conflict(session, field_id=field_id, slot=slot):
        raise SlotAvailable("Slot is available; reservation can be booked directly")

    existing = await session.execute(
        select(WaitlistEntry).where(
            _same_key(field_id, slot),
            WaitlistEntry.user_id == user_id,
            WaitlistEntry.status.in_(LIVE_WAITLIST_STATUSES),
        )
    )
    for current in existing.scalars().all():
        if not is_lapsed(current, now):
            raise DuplicateEntry("User is already waitlisted for this slot")
        # Lapsed but not yet swept; retire it so the live index stays unique.
        current.status = WaitlistStatus.EXPIRED

    # Entries of one key get strictly increasing created_at so FIFO holds even
    # when two enqueues share a clock reading. Concurrent enqueues racing past
    # this read can still tie; the id then decides.
    latest = await session.scalar(
        select(func.max(WaitlistEntry.created_at)).where(_same_key(field_id, slot))
    )
    created_at = now
    if latest is not None and _coerce_utc(latest) >= _coerce_utc(now):
        created_at = _coerce_utc(latest) + timedelta(microseconds=1)

    ttl_days = settings.waitlist_entry_ttl_days
    entry = WaitlistEntry(
        account_id=account_id,
        field_id=field_id,
        user_id=user_id,
        desired_date=slot.date,
        desired_start_time=slot.start_time,
        desired_end_time=slot.end_time,
        priority=priority,
        status=WaitlistStatus.OPEN,
        created_at=created_at,
        expires_at=now + timedelta(days=ttl_days) if ttl_days > 0 else None,
    )
    session.add(entry)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateEntry("User is already waitlisted for this slot") from exc

    await audit_service.record_event(
        session,
        event_type="waitlist.created",
        account_id=account_id,
        user_id=user_id,
        description=f"Waitlisted for {slot}",
        payload={"waitlist_entry_id": str(entry.id), "field_id": str(field_id)},
        commit=False,
    )
    await session.commit()
    return entry


async def get_entry(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    entry_id: uuid.UUID,
) -> WaitlistEntry | None:
    entry = await session.get(WaitlistEntry, entry_id)
    if entry is None or entry.account_id != account_id:
        return None
    return entry


async def list_entries(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    field_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    status: WaitlistStatus | None = None,
    desired_date: date | None = None,
    limit: int = 50,
) -> Sequence[WaitlistEntry]:
    """Return entries in queue order."""
    stmt = (
        select(WaitlistEntry)
        .where(WaitlistEntry.account_id == account_id)
        .order_by(WaitlistEntry.desired_date, *QUEUE_ORDER)
    )
    if field_id:
        stmt = stmt.where(WaitlistEntry.field_id == field_id)
    if user_id:
        stmt = stmt.where(WaitlistEntry.user_id == user_id)
    if status:
        stmt = stmt.where(WaitlistEntry.status == status)
    if desired_date:
        stmt = stmt.where(WaitlistEntry.desired_date == desired_date)
    result = await session.execute(stmt.limit(min(limit, 200)))
    return result.scalars().all()


async def position(
    session: AsyncSession,
    *,
    entry: WaitlistEntry,
    now: datetime | None = None,
) -> int:
    """Return the 1-based rank of ``entry`` among live entries for its slot."""
    now = now or datetime.now(UTC)
    if entry.status not in LIVE_WAITLIST_STATUSES or is_lapsed(entry, now):
        raise InvalidTransition("Waitlist entry is no longer waiting")

    ahead = or_(
        WaitlistEntry.priority > entry.priority,
        and_(
            WaitlistEntry.priority == entry.priority,
            WaitlistEntry.created_at < entry.created_at,
        ),
        and_(
            WaitlistEntry.priority == entry.priority,
            WaitlistEntry.created_at == entry.created_at,
            WaitlistEntry.id < entry.id,
        ),
    )
    result = await session.execute(
        select(func.count(WaitlistEntry.id)).where(
            _same_key(entry.field_id, entry.desired_slot),
            _live(now),
            WaitlistEntry.id != entry.id,
            ahead,
        )
    )
    return int(result.scalar_one()) + 1


async def queue_size(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime | None = None,
) -> int:
    now = now or datetime.now(UTC)
    result = await session.execute(
        select(func.count(WaitlistEntry.id)).where(
            _same_key(field_id, slot), _live(now)
        )
    )
    return int(result.scalar_one())


async def peek_top(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime | None = None,
) -> WaitlistEntry | None:
    """Return the best-ranked entry that is still waiting and was never offered."""
    now = now or datetime.now(UTC)
    result = await session.execute(
        select(WaitlistEntry)
        .where(
            _same_key(field_id, slot),
            WaitlistEntry.status == WaitlistStatus.OPEN,
            WaitlistEntry.notified_at.is_(None),
            _not_lapsed(now),
        )
        .order_by(*QUEUE_ORDER)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def has_live_offer(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime,
) -> bool:
    """Return True when an unexpired offer covers any part of ``slot``.

    Waitlist keys may overlap without being equal, so an offer for 10:00-12:00
    also blocks offering 10:00-11:00 on the same field.
    """
    result = await session.execute(
        select(WaitlistEntry.id)
        .where(
            _overlapping(field_id, slot),
            WaitlistEntry.status == WaitlistStatus.OFFERED,
            _not_lapsed(now),
        )
        .limit(1)
    )
    return result.first() is not None


async def waiting_keys(
    session: AsyncSession,
    *,
    now: datetime,
    account_id: uuid.UUID | None = None,
) -> list[tuple[uuid.UUID, TimeSlot]]:
    """Return every ``(field_id, slot)`` that still has open entries."""
    stmt = (
        select(
            WaitlistEntry.field_id,
            WaitlistEntry.desired_date,
            WaitlistEntry.desired_start_time,
            WaitlistEntry.desired_end_time,
        )
        .where(WaitlistEntry.status == WaitlistStatus.OPEN, _not_lapsed(now))
        .distinct()
        .order_by(
            WaitlistEntry.desired_date,
            WaitlistEntry.desired_start_time,
            WaitlistEntry.field_id,
        )
    )
    if account_id is not None:
        stmt = stmt.where(WaitlistEntry.account_id == account_id)
    result = await session.execute(stmt)
    return [
        (field_id, TimeSlot(day, start, end))
        for field_id, day, start, end in result.all()
    ]


async def overlapping_waiting_keys(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime,
) -> list[TimeSlot]:
    """Return waited-for slots on ``field_id`` that overlap ``slot``.

    Slots are ordered by the rank of their best open entry, so freed time is
    offered to the highest-ranked waiter first.
    """
    result = await session.execute(
        select(
            WaitlistEntry.desired_date,
            WaitlistEntry.desired_start_time,
            WaitlistEntry.desired_end_time,
        )
        .where(
            _overlapping(field_id, slot),
            WaitlistEntry.status == WaitlistStatus.OPEN,
            WaitlistEntry.notified_at.is_(None),
            _not_lapsed(now),
        )
        .order_by(*QUEUE_ORDER)
    )
    keys: list[TimeSlot] = []
    for day, start, end in result.all():
        key = TimeSlot(day, start, end)
        if key not in keys:
            keys.append(key)
    return keys


async def withdraw_entry(
    session: AsyncSession,
    *,
    entry: WaitlistEntry,
    user_id: uuid.UUID,
) -> WaitlistEntry:
    if entry.status not in LIVE_WAITLIST_STATUSES:
        raise InvalidTransition(
            f"Cannot withdraw a waitlist entry that is {entry.status.value}"
        )
    entry.status = WaitlistStatus.WITHDRAWN
    entry.expires_at = None
    await audit_service.record_event(
        session,
        event_type="waitlist.withdrawn",
        account_id=entry.account_id,
        user_id=user_id,
        description="Waitlist entry withdrawn",
        payload={"waitlist_entry_id": str(entry.id)},
        commit=False,
    )
    await session.commit()
    return entry


async def expire_entries(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    account_id: uuid.UUID | None = None,
) -> int:
    """Mark open and offered entries whose deadline passed as expired."""
    now = now or datetime.now(UTC)
    stmt = select(WaitlistEntry).where(
        WaitlistEntry.status.in_(LIVE_WAITLIST_STATUSES),
        WaitlistEntry.expires_at.is_not(None),
        WaitlistEntry.expires_at <= now,
    )
    if account_id is not None:
        stmt = stmt.where(WaitlistEntry.account_id == account_id)
    result = await session.execute(stmt)
    entries = list(result.scalars().all())
    for entry in entries:
        entry.status = WaitlistStatus.EXPIRED
    if entries:
        await session.commit()
    return len(entries)
