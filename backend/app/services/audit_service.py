"""Helper utilities for recording audit events."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_event import AuditEvent


async def record_event(
    session: AsyncSession,
    *,
    event_type: str,
    account_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
    description: str | None = None,
    payload: dict[str, Any] | None = None,
    commit: bool = True,
) -> AuditEvent:
    """Persist an audit event and return it.

    With ``commit=False`` the event joins the caller's open transaction.
    """
    event = AuditEvent(
        account_id=account_id,
        user_id=user_id,
        event_type=event_type,
        description=description,
        payload=payload,
    )
    session.add(event)
    if commit:
        await session.commit()
    return event


async def list_events(
    session: AsyncSession,
    *,
    account_id: uuid.UUID,
    event_type: str | None = None,
    limit: int = 100,
) -> Sequence[AuditEvent]:
    """Return the account's audit trail, newest first."""
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.account_id == account_id)
        .order_by(AuditEvent.created_at.desc())
    )
    if event_type:
        stmt = stmt.where(AuditEvent.event_type == event_type)
    result = await session.execute(stmt.limit(limit))
    return result.scalars().all()
