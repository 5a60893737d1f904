"""Per-field serialization for check-then-write booking sequences."""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import SchedulingError
from app.models.field import Field

logger = logging.getLogger(__name__)

_local_locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _local_lock(field_id: uuid.UUID) -> asyncio.Lock:
    lock = _local_locks.get(field_id)
    if lock is None:
        lock = asyncio.Lock()
        _local_locks[field_id] = lock
    return lock


@asynccontextmanager
async def field_lock(
    session: AsyncSession, field_id: uuid.UUID
) -> AsyncIterator[Field | None]:
    """Hold the write lock for ``field_id`` and yield the locked field row.

    Two layers make the conflict check and the following write atomic:
    a process-local lock per field, and a ``SELECT ... FOR UPDATE`` on the
    field row that serializes writers across processes until the caller's
    transaction ends. Yields None when the field does not exist.

    A transaction still open when the block exits is committed. Scheduling
    errors are raised before anything is staged, so they also end with a
    commit and previously loaded objects stay usable; any other exception
    rolls the transaction back.
    """
    lock = _local_lock(field_id)
    async with lock:
        logger.debug("Acquired booking lock for field %s", field_id)
        result = await session.execute(
            select(Field).where(Field.id == field_id).with_for_update()
        )
        try:
            yield result.scalar_one_or_none()
        except SchedulingError:
            if session.in_transaction():
                await session.commit()
            raise
        except BaseException:
            await session.rollback()
            raise
        if session.in_transaction():
            await session.commit()
