"""Service layer exports."""
from app.services import (
    conflict_service,
    field_service,
    promotion_service,
    reservation_service,
    waitlist_service,
)

__all__ = [
    "conflict_service",
    "field_service",
    "promotion_service",
    "reservation_service",
    "waitlist_service",
]
