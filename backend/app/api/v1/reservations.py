"""Reservation booking and lifecycle endpoints."""
from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.reservation import Reservation, ReservationStatus
from app.schemas.reservation import (
    RecurringReservationResponse,
    ReservationCancelRequest,
    ReservationCancelResponse,
    ReservationCreate,
    ReservationRead,
)
from app.schemas.waitlist import WaitlistPromotionRead
from app.services import promotion_service, reservation_service

router = APIRouter()


async def _load_reservation(
    session: AsyncSession,
    principal: deps.Principal,
    reservation_id: uuid.UUID,
) -> Reservation:
    reservation = await reservation_service.get_reservation(
        session,
        account_id=principal.account_id,
        reservation_id=reservation_id,
    )
    if reservation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found"
        )
    if not principal.is_manager and reservation.user_id != principal.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return reservation


@router.post(
    "",
    response_model=ReservationRead | RecurringReservationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a field once or on a recurring pattern",
)
async def create_reservation(
    payload: ReservationCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> ReservationRead | RecurringReservationResponse:
    try:
        slot = payload.to_slot()
        if payload.recurrence is not None:
            result = await reservation_service.book_recurring(
                session,
                account_id=principal.account_id,
                field_id=payload.field_id,
                user_id=principal.user_id,
                pattern=payload.recurrence.to_pattern(slot),
                team_id=payload.team_id,
                purpose=payload.purpose,
                attendees=payload.attendees,
                notes=payload.notes,
            )
            return RecurringReservationResponse.from_result(result)
        reservation = await reservation_service.book_once(
            session,
            account_id=principal.account_id,
            field_id=payload.field_id,
            user_id=principal.user_id,
            slot=slot,
            team_id=payload.team_id,
            purpose=payload.purpose,
            attendees=payload.attendees,
            notes=payload.notes,
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    return ReservationRead.model_validate(reservation)


@router.get("", response_model=list[ReservationRead], summary="List reservations")
async def list_reservations(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    field_id: uuid.UUID | None = None,
    status_filter: ReservationStatus | None = Query(default=None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
    skip: int = 0,
    limit: int = Query(default=50, ge=1, le=200),
) -> list[ReservationRead]:
    reservations = await reservation_service.list_reservations(
        session,
        account_id=principal.account_id,
        field_id=field_id,
        user_id=None if principal.is_manager else principal.user_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return [ReservationRead.model_validate(obj) for obj in reservations]


@router.get(
    "/{reservation_id}", response_model=ReservationRead, summary="Get reservation"
)
async def read_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> ReservationRead:
    reservation = await _load_reservation(session, principal, reservation_id)
    return ReservationRead.model_validate(reservation)


@router.post(
    "/{reservation_id}/confirm",
    response_model=ReservationRead,
    summary="Confirm a pending reservation",
)
async def confirm_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> ReservationRead:
    deps.require_manager(principal)
    reservation = await _load_reservation(session, principal, reservation_id)
    try:
        reservation = await reservation_service.confirm_reservation(
            session, reservation=reservation, user_id=principal.user_id
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    return ReservationRead.model_validate(reservation)


@router.post(
    "/{reservation_id}/complete",
    response_model=ReservationRead,
    summary="Mark a confirmed reservation as completed",
)
async def complete_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> ReservationRead:
    deps.require_manager(principal)
    reservation = await _load_reservation(session, principal, reservation_id)
    try:
        reservation = await reservation_service.complete_reservation(
            session, reservation=reservation, user_id=principal.user_id
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    return ReservationRead.model_validate(reservation)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationCancelResponse,
    summary="Cancel a reservation and offer the slot to the waitlist",
)
async def cancel_reservation(
    reservation_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    payload: ReservationCancelRequest | None = None,
) -> ReservationCancelResponse:
    reservation = await _load_reservation(session, principal, reservation_id)
    try:
        reservation = await reservation_service.cancel_reservation(
            session,
            reservation=reservation,
            cancelled_by=principal.user_id,
            reason=payload.reason if payload else None,
        )
    except ValueError as exc:
        deps.raise_from_value_error(exc)
    cancelled = ReservationRead.model_validate(reservation)
    promotions = await promotion_service.promote_freed(
        session, field_id=reservation.field_id, slot=reservation.slot
    )
    return ReservationCancelResponse(
        reservation=cancelled,
        promotions=[WaitlistPromotionRead.from_promotion(item) for item in promotions],
    )
