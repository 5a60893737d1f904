"""Field administration and availability endpoints."""
from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.field import FieldStatus
from app.schemas.field import FieldAvailability, FieldCreate, FieldRead
from app.schemas.reservation import ReservationRead
from app.services import field_service, reservation_service

router = APIRouter()


@router.get("", response_model=list[FieldRead], summary="List fields")
async def list_fields(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    status_filter: FieldStatus | None = Query(default=None, alias="status"),
    skip: int = 0,
    limit: int = 50,
) -> list[FieldRead]:
    fields = await field_service.list_fields(
        session,
        account_id=principal.account_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return [FieldRead.model_validate(obj) for obj in fields]


@router.post(
    "",
    response_model=FieldRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create field",
)
async def create_field(
    payload: FieldCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> FieldRead:
    deps.require_manager(principal)
    try:
        field = await field_service.create_field(
            session, account_id=principal.account_id, payload=payload
        )
    except IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Field already exists"
        ) from exc
    return FieldRead.model_validate(field)


@router.get("/{field_id}", response_model=FieldRead, summary="Get field")
async def read_field(
    field_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
) -> FieldRead:
    field = await field_service.get_field(
        session, field_id=field_id, account_id=principal.account_id
    )
    if field is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field not found")
    return FieldRead.model_validate(field)


@router.get(
    "/{field_id}/availability",
    response_model=FieldAvailability,
    summary="Reservations occupying a field on a day",
)
async def field_availability(
    field_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    principal: Annotated[deps.Principal, Depends(deps.get_current_principal)],
    day: date = Query(alias="date"),
) -> FieldAvailability:
    field = await field_service.get_field(
        session, field_id=field_id, account_id=principal.account_id
    )
    if field is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field not found")
    reservations = await reservation_service.list_field_reservations(
        session, field_id=field_id, day=day
    )
    return FieldAvailability(
        field_id=field_id,
        date=day,
        reservations=[ReservationRead.model_validate(obj) for obj in reservations],
    )
