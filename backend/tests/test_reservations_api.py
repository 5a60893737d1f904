"""Tests for reservation booking endpoints."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def _payload(field_id: object, day: str = "2030-06-03", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "field_id": str(field_id),
        "date": day,
        "start_time": "18:00:00",
        "end_time": "19:00:00",
    }
    payload.update(extra)
    return payload


async def test_book_once_and_conflict(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    headers = app_context["coach_headers"]

    response = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"], purpose="U12 practice"),
        headers=headers,
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"
    assert created["user_id"] == str(app_context["coach_id"])
    assert created["purpose"] == "U12 practice"

    conflict = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"]) | {"start_time": "18:30:00", "end_time": "20:00:00"},
        headers=app_context["member_headers"],
    )
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "slot_conflict"

    adjacent = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"]) | {"start_time": "19:00:00", "end_time": "20:00:00"},
        headers=app_context["member_headers"],
    )
    assert adjacent.status_code == 201


async def test_invalid_requests_are_bad_requests(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    headers = app_context["coach_headers"]

    empty_window = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"]) | {"end_time": "18:00:00"},
        headers=headers,
    )
    assert empty_window.status_code == 400
    assert empty_window.json()["detail"]["code"] == "invalid_slot"

    closed = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["closed_field_id"]),
        headers=headers,
    )
    assert closed.status_code == 400
    assert closed.json()["detail"]["code"] == "field_unavailable"

    both_terminators = await client.post(
        "/api/v1/reservations",
        json=_payload(
            app_context["field_id"],
            recurrence={"frequency": "weekly", "count": 2, "until": "2030-07-01"},
        ),
        headers=headers,
    )
    assert both_terminators.status_code == 400
    assert both_terminators.json()["detail"]["code"] == "invalid_pattern"

    too_many = await client.post(
        "/api/v1/reservations",
        json=_payload(
            app_context["field_id"], recurrence={"frequency": "daily", "count": 366}
        ),
        headers=headers,
    )
    assert too_many.status_code == 400
    assert too_many.json()["detail"]["code"] == "recurrence_too_large"


async def test_recurring_booking_reports_skipped_occurrences(
    app_context: dict[str, object],
) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    headers = app_context["coach_headers"]

    blocker = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"], day="2030-06-10"),
        headers=app_context["member_headers"],
    )
    assert blocker.status_code == 201

    response = await client.post(
        "/api/v1/reservations",
        json=_payload(
            app_context["field_id"],
            recurrence={"frequency": "weekly", "count": 4},
        ),
        headers=headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["is_partial"] is True
    assert [item["date"] for item in body["created"]] == [
        "2030-06-03",
        "2030-06-17",
        "2030-06-24",
    ]
    assert body["skipped"] == [
        {
            "date": "2030-06-10",
            "start_time": "18:00:00",
            "end_time": "19:00:00",
            "reason": "slot_conflict",
            "conflicting_reservation_ids": [blocker.json()["id"]],
        }
    ]
    assert {item["series_id"] for item in body["created"]} == {body["series_id"]}

    everything_taken = await client.post(
        "/api/v1/reservations",
        json=_payload(
            app_context["field_id"],
            day="2030-06-17",
            recurrence={"frequency": "weekly", "count": 2},
        ),
        headers=headers,
    )
    assert everything_taken.status_code == 409
    assert everything_taken.json()["detail"]["code"] == "all_occurrences_conflicted"


async def test_lifecycle_permissions(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    created = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"]),
        headers=app_context["member_headers"],
    )
    reservation_id = created.json()["id"]

    forbidden = await client.post(
        f"/api/v1/reservations/{reservation_id}/confirm",
        headers=app_context["member_headers"],
    )
    assert forbidden.status_code == 403

    hidden = await client.get(
        f"/api/v1/reservations/{reservation_id}",
        headers=app_context["coach_headers"],
    )
    assert hidden.status_code == 403

    confirmed = await client.post(
        f"/api/v1/reservations/{reservation_id}/confirm",
        headers=app_context["manager_headers"],
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    completed = await client.post(
        f"/api/v1/reservations/{reservation_id}/complete",
        headers=app_context["manager_headers"],
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    cancel_completed = await client.post(
        f"/api/v1/reservations/{reservation_id}/cancel",
        headers=app_context["member_headers"],
    )
    assert cancel_completed.status_code == 400
    assert cancel_completed.json()["detail"]["code"] == "invalid_transition"


async def test_cancel_offers_slot_to_waitlist(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    created = await client.post(
        "/api/v1/reservations",
        json=_payload(app_context["field_id"]),
        headers=app_context["coach_headers"],
    )
    reservation_id = created.json()["id"]

    waiting = await client.post(
        "/api/v1/waitlist",
        json=_payload(app_context["field_id"]),
        headers=app_context["member_headers"],
    )
    assert waiting.status_code == 201

    cancelled = await client.post(
        f"/api/v1/reservations/{reservation_id}/cancel",
        json={"reason": "Team withdrew"},
        headers=app_context["coach_headers"],
    )
    assert cancelled.status_code == 200
    body = cancelled.json()
    assert body["reservation"]["status"] == "cancelled"
    assert body["reservation"]["cancellation_reason"] == "Team withdrew"
    assert [(item["user_id"], item["entry_id"]) for item in body["promotions"]] == [
        (str(app_context["member_id"]), waiting.json()["id"])
    ]


async def test_listing_and_availability(app_context: dict[str, object]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    bookings = (
        (_payload(app_context["field_id"], day="2030-06-04"), app_context["coach_headers"]),
        (_payload(app_context["field_id"]), app_context["coach_headers"]),
        (
            _payload(app_context["field_id"])
            | {"start_time": "08:00:00", "end_time": "09:00:00"},
            app_context["member_headers"],
        ),
    )
    for payload, headers in bookings:
        response = await client.post("/api/v1/reservations", json=payload, headers=headers)
        assert response.status_code == 201

    managed = await client.get(
        "/api/v1/reservations",
        params={"field_id": str(app_context["field_id"]), "date_to": "2030-06-03"},
        headers=app_context["manager_headers"],
    )
    assert [(item["date"], item["start_time"]) for item in managed.json()] == [
        ("2030-06-03", "08:00:00"),
        ("2030-06-03", "18:00:00"),
    ]

    own = await client.get("/api/v1/reservations", headers=app_context["member_headers"])
    assert len(own.json()) == 1

    availability = await client.get(
        f"/api/v1/fields/{app_context['field_id']}/availability",
        params={"date": "2030-06-03"},
        headers=app_context["member_headers"],
    )
    assert availability.status_code == 200
    assert [item["start_time"] for item in availability.json()["reservations"]] == [
        "08:00:00",
        "18:00:00",
    ]
