"""Bookable sports field owned by an account."""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin


if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.account import Account
    from app.models.reservation import Reservation


class FieldStatus(str, enum.Enum):
    """Whether a field accepts new bookings."""

    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    CLOSED = "closed"


class Field(TimestampMixin, Base):
    """A single bookable resource; reservations never span fields."""

    __tablename__ = "fields"
    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_fields_account_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[FieldStatus] = mapped_column(
        Enum(FieldStatus), default=FieldStatus.AVAILABLE, nullable=False
    )
    address: Mapped[str | None] = mapped_column(Text)
    capacity: Mapped[int | None] = mapped_column(Integer)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    account: Mapped["Account"] = relationship("Account", back_populates="fields")
    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation", back_populates="field"
    )
