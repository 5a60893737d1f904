"""Waitlist management endpoints."""

from __future__ import annotations

import uuid
from datetime import date, time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.waitlist_entry import WaitlistEntry, WaitlistStatus
from app.schemas.reservation import ReservationRead
from app.schemas.scheduling import TimeSlotPayload
from app.schemas.waitlist import (
    WaitlistEntryCreate,
    WaitlistEntryRead,
    WaitlistPositionRead,
    WaitlistPromoteRequest,
    WaitlistPromotionRead,
    WaitlistSweepResponse,
)
from app.services import (
    conflict_service,
    field_service,
    promotion_service,
    waitlist_service,
)

router = APIRouter(prefix="/waitlist")


async def _load_entry(
    session: AsyncSession,
    principal: deps.Principal,
    entry_id: uuid.UUID,
) -> WaitlistEntry:
    entry = await waitlist_service.get_entry(
        session, account_id=principal.account_id, entry_id=entry_id
    )
    if entry is None:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, detail="Waitlist entry not found"
        )
    if not principal.is_manager and entry.user_id != principal.user_id:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return entry


@router.post(
    "",
    response_model=WaitlistEntryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Join the waitlist for an occupied slot",
)
async def create_waitlist_entry(
    payload: WaitlistEntryCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> WaitlistEntryRead:
    if payload.priority and not principal.is_manager:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, detail="Only managers may set priority"
        )
    try:
        entry = await waitlist_service.enqueue(
            session,
            account_id=principal.account_id,
            field_id=payload.field_id,
            user_id=principal.user_id,
            slot=payload.to_slot(),
            priority=payload.priority,
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    return WaitlistEntryRead.from_orm_entry(entry)


@router.get("", response_model=list[WaitlistEntryRead], summary="List waitlist entries")
async def list_waitlist_entries(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    field_id: uuid.UUID | None = Query(default=None),
    status_filter: WaitlistStatus | None = Query(default=None, alias="status"),
    desired_date: date | None = Query(default=None, alias="date"),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[WaitlistEntryRead]:
    entries = await waitlist_service.list_entries(
        session,
        account_id=principal.account_id,
        field_id=field_id,
        user_id=None if principal.is_manager else principal.user_id,
        status=status_filter,
        desired_date=desired_date,
        limit=limit,
    )
    return [WaitlistEntryRead.from_orm_entry(entry) for entry in entries]


@router.get(
    "/top",
    response_model=WaitlistEntryRead | None,
    summary="Next entry that would be offered the slot",
)
async def peek_waitlist_top(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    field_id: uuid.UUID,
    desired_date: date = Query(alias="date"),
    start_time: time = Query(),
    end_time: time = Query(),
) -> WaitlistEntryRead | None:
    deps.require_manager(principal)
    try:
        slot = TimeSlotPayload(
            date=desired_date, start_time=start_time, end_time=end_time
        ).to_slot()
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    entry = await waitlist_service.peek_top(session, field_id=field_id, slot=slot)
    if entry is None or entry.account_id != principal.account_id:
        return None
    return WaitlistEntryRead.from_orm_entry(entry)


@router.get(
    "/{entry_id}/position",
    response_model=WaitlistPositionRead,
    summary="Position of an entry in its queue",
)
async def waitlist_position(
    entry_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> WaitlistPositionRead:
    entry = await _load_entry(session, principal, entry_id)
    slot = entry.desired_slot
    try:
        rank = await waitlist_service.position(session, entry=entry)
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    total = await waitlist_service.queue_size(
        session, field_id=entry.field_id, slot=slot
    )
    taken = await conflict_service.has_conflict(
        session, field_id=entry.field_id, slot=slot
    )
    return WaitlistPositionRead(
        entry_id=entry.id,
        position=rank,
        total_in_queue=total,
        slot_available=not taken,
    )


@router.post(
    "/{entry_id}/accept",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Accept a waitlist offer",
)
async def accept_waitlist_offer(
    entry_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> ReservationRead:
    entry = await _load_entry(session, principal, entry_id)
    if entry.user_id != principal.user_id:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN, detail="Offer belongs to another user"
        )
    try:
        reservation = await promotion_service.accept_offer(
            session, entry=entry, user_id=principal.user_id
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    return ReservationRead.model_validate(reservation)


@router.delete(
    "/{entry_id}",
    response_model=WaitlistEntryRead,
    summary="Withdraw from the waitlist",
)
async def withdraw_waitlist_entry(
    entry_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> WaitlistEntryRead:
    entry = await _load_entry(session, principal, entry_id)
    had_offer = entry.status is WaitlistStatus.OFFERED
    try:
        entry = await waitlist_service.withdraw_entry(
            session, entry=entry, user_id=principal.user_id
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    withdrawn = WaitlistEntryRead.from_orm_entry(entry)
    if had_offer:
        await promotion_service.promote_freed(
            session, field_id=entry.field_id, slot=entry.desired_slot
        )
    return withdrawn


@router.post(
    "/promote",
    response_model=WaitlistPromotionRead | None,
    summary="Offer a free slot to the next waiting user",
)
async def promote_waitlist(
    payload: WaitlistPromoteRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> WaitlistPromotionRead | None:
    deps.require_manager(principal)
    field = await field_service.get_field(
        session, field_id=payload.field_id, account_id=principal.account_id
    )
    if field is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Field not found")
    try:
        promotion = await promotion_service.promote(
            session, field_id=payload.field_id, slot=payload.to_slot()
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    if promotion is None:
        return None
    return WaitlistPromotionRead.from_promotion(promotion)


@router.post(
    "/sweep",
    response_model=WaitlistSweepResponse,
    summary="Expire lapsed entries and re-offer freed slots",
)
async def sweep_waitlist(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> WaitlistSweepResponse:
    deps.require_manager(principal)
    result = await promotion_service.sweep(
        session, account_id=principal.account_id
    )
    return WaitlistSweepResponse.from_result(result)
