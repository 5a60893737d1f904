"""Versioned API router."""

from fastapi import APIRouter

from . import fields, health, reservations, waitlist

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(fields.router, prefix="/fields", tags=["fields"])
router.include_router(
    reservations.router, prefix="/reservations", tags=["reservations"]
)
router.include_router(waitlist.router, tags=["waitlist"])
