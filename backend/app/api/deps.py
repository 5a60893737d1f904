"""Common API dependencies."""

from __future__ import annotations

import enum
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AllOccurrencesConflicted,
    DuplicateEntry,
    SchedulingError,
    SlotConflict,
)
from app.core.security import decode_access_token
from app.db.session import get_session

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, enum.Enum):
    """Roles carried in the bearer token."""

    ADMIN = "admin"
    LEAGUE_MANAGER = "league_manager"
    COACH = "coach"
    MEMBER = "member"


MANAGER_ROLES = frozenset({Role.ADMIN, Role.LEAGUE_MANAGER})


@dataclass(slots=True, frozen=True)
class Principal:
    """The authenticated caller as described by token claims."""

    user_id: uuid.UUID
    account_id: uuid.UUID
    role: Role

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


async def get_current_principal(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Authenticate the request from its bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc

    try:
        return Principal(
            user_id=uuid.UUID(str(payload["sub"])),
            account_id=uuid.UUID(str(payload["account_id"])),
            role=Role(payload.get("role", Role.MEMBER.value)),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise credentials_exception from exc


def require_manager(principal: Principal) -> None:
    """Raise HTTP 403 unless the caller manages the account's fields."""
    if not principal.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager permissions required",
        )


_CONFLICT_ERRORS = (SlotConflict, AllOccurrencesConflicted, DuplicateEntry)


def raise_from_value_error(error: ValueError) -> NoReturn:
    """Translate a service error into the matching HTTP response."""
    status_code = status.HTTP_400_BAD_REQUEST
    if isinstance(error, _CONFLICT_ERRORS):
        status_code = status.HTTP_409_CONFLICT
    detail: str | dict[str, str] = str(error)
    if isinstance(error, SchedulingError):
        detail = {"code": error.code, "message": str(error)}
    raise HTTPException(status_code=status_code, detail=detail) from error
