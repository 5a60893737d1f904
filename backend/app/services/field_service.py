"""Field management services."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.field import Field, FieldStatus

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.schemas.field import FieldCreate


async def list_fields(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    status: FieldStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Field]:
    """Return the account's fields ordered by name."""
    stmt: Select[tuple[Field]] = select(Field).where(Field.account_id == account_id)
    if status is not None:
        stmt = stmt.where(Field.status == status)
    stmt = stmt.order_by(Field.name).offset(skip).limit(min(limit, 100))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_field(
    session: AsyncSession,
    *,
    field_id: uuid.UUID,
    account_id: uuid.UUID,
) -> Field | None:
    """Fetch a field owned by ``account_id``."""
    field = await session.get(Field, field_id)
    if field is None or field.account_id != account_id:
        return None
    return field


async def create_field(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    payload: FieldCreate,
) -> Field:
    """Create a new field; duplicate names within an account raise IntegrityError."""
    field = Field(account_id=account_id, **payload.model_dump())
    session.add(field)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise
    await session.refresh(field)
    return field
