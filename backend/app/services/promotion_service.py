"""Waitlist promotion: offering freed slots to the next waiting user."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import InvalidTransition
from app.models.field import FieldStatus
from app.models.reservation import Reservation, ReservationStatus
from app.models.waitlist_entry import WaitlistEntry, WaitlistStatus
from app.services import (
    audit_service,
    conflict_service,
    reservation_service,
    waitlist_service,
)
from app.services.field_lock import field_lock
from app.services.time_slot import TimeSlot

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class WaitlistPromotion:
    """The offer made to a waitlisted user; delivery is left to the caller."""

    entry_id: uuid.UUID
    user_id: uuid.UUID
    field_id: uuid.UUID
    slot: TimeSlot
    expires_at: datetime


@dataclass(slots=True)
class SweepResult:
    expired: int = 0
    promotions: list[WaitlistPromotion] = field(default_factory=list)


async def promote(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime | None = None,
    acceptance_window: timedelta | None = None,
) -> WaitlistPromotion | None:
    """Offer ``slot`` to the best-ranked waiting entry, if it is free.

    The availability check and the offer happen under the field lock in one
    transaction, so a slot is never offered while it is booked and never
    offered to two users at once. Returns None when the slot is still taken,
    an unexpired offer overlaps it, or nobody is waiting.
    """
    now = now or datetime.now(UTC)
    if acceptance_window is None:
        acceptance_window = timedelta(
            minutes=get_settings().waitlist_acceptance_window_minutes
        )

    async with field_lock(session, field_id) as field_row:
        if field_row is None or field_row.status is not FieldStatus.AVAILABLE:
            return None
        if await conflict_service.has_conflict(session, field_id=field_id, slot=slot):
            logger.debug("Slot %s on field %s is still reserved", slot, field_id)
            return None
        if await waitlist_service.has_live_offer(
            session, field_id=field_id, slot=slot, now=now
        ):
            return None
        entry = await waitlist_service.peek_top(
            session, field_id=field_id, slot=slot, now=now
        )
        if entry is None:
            return None

        entry.status = WaitlistStatus.OFFERED
        entry.notified_at = now
        entry.expires_at = now + acceptance_window
        await audit_service.record_event(
            session,
            event_type="waitlist.offered",
            account_id=entry.account_id,
            user_id=entry.user_id,
            description=f"Offered {slot}",
            payload={
                "waitlist_entry_id": str(entry.id),
                "field_id": str(field_id),
            },
            commit=False,
        )
        await session.commit()

    logger.info(
        "Offered %s on field %s to user %s until %s",
        slot,
        field_id,
        entry.user_id,
        entry.expires_at.isoformat(),
    )
    return WaitlistPromotion(
        entry_id=entry.id,
        user_id=entry.user_id,
        field_id=field_id,
        slot=slot,
        expires_at=now + acceptance_window,
    )


async def promote_freed(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    slot: TimeSlot,
    now: datetime | None = None,
    acceptance_window: timedelta | None = None,
) -> list[WaitlistPromotion]:
    """Offer time freed at ``slot`` to every waiting key it overlaps.

    Keys are tried in the rank order of their best entry. ``promote`` skips a
    key that is still partly booked or overlaps an offer made earlier in the
    loop, so each stretch of freed time goes to at most one user.
    """
    now = now or datetime.now(UTC)
    keys = await waitlist_service.overlapping_waiting_keys(
        session, field_id=field_id, slot=slot, now=now
    )
    promotions: list[WaitlistPromotion] = []
    for key in keys:
        promotion = await promote(
            session,
            field_id=field_id,
            slot=key,
            now=now,
            acceptance_window=acceptance_window,
        )
        if promotion is not None:
            promotions.append(promotion)
    return promotions


async def accept_offer(
    session: AsyncSession,
    *,
    entry: WaitlistEntry,
    user_id: uuid.UUID,
    now: datetime | None = None,
) -> Reservation:
    """Book the offered slot as a confirmed reservation for the entry's user."""
    now = now or datetime.now(UTC)
    if entry.user_id != user_id:
        raise InvalidTransition("Offer belongs to another user")

    async with field_lock(session, entry.field_id) as field_row:
        await session.refresh(entry)
        if entry.status is not WaitlistStatus.OFFERED:
            raise InvalidTransition("Waitlist entry has no pending offer")
        if waitlist_service.is_lapsed(entry, now):
            raise InvalidTransition("Offer has expired")

        reservation = await reservation_service.insert_reservation_locked(
            session,
            field_row=field_row,
            account_id=entry.account_id,
            user_id=entry.user_id,
            slot=entry.desired_slot,
            status=ReservationStatus.CONFIRMED,
            now=now,
        )
        entry.status = WaitlistStatus.CONVERTED
        entry.expires_at = None
        entry.converted_reservation_id = reservation.id
        await audit_service.record_event(
            session,
            event_type="waitlist.accepted",
            account_id=entry.account_id,
            user_id=user_id,
            description="Waitlist offer accepted",
            payload={
                "waitlist_entry_id": str(entry.id),
                "reservation_id": str(reservation.id),
            },
            commit=False,
        )
        await session.commit()
    return reservation


async def sweep(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    account_id: uuid.UUID | None = None,
) -> SweepResult:
    """Expire lapsed entries, then re-offer every slot that still has waiters.

    Without ``account_id`` every account is swept.
    """
    now = now or datetime.now(UTC)
    expired = await waitlist_service.expire_entries(
        session, now=now, account_id=account_id
    )
    result = SweepResult(expired=expired)
    keys = await waitlist_service.waiting_keys(
        session, now=now, account_id=account_id
    )
    for field_id, slot in keys:
        promotion = await promote(session, field_id=field_id, slot=slot, now=now)
        if promotion is not None:
            result.promotions.append(promotion)
    logger.info(
        "Waitlist sweep expired %d entries and made %d offers",
        result.expired,
        len(result.promotions),
    )
    return result
