"""ORM models package export."""

from app.models.account import Account
from app.models.audit_event import AuditEvent
from app.models.field import Field, FieldStatus
from app.models.reservation import (
    ACTIVE_RESERVATION_STATUSES,
    Reservation,
    ReservationStatus,
)
from app.models.waitlist_entry import (
    LIVE_WAITLIST_STATUSES,
    WaitlistEntry,
    WaitlistStatus,
)

__all__ = [
    "ACTIVE_RESERVATION_STATUSES",
    "Account",
    "AuditEvent",
    "Field",
    "FieldStatus",
    "LIVE_WAITLIST_STATUSES",
    "Reservation",
    "ReservationStatus",
    "WaitlistEntry",
    "WaitlistStatus",
]
