"""
HTTP surface: routes map service outcomes to status codes.
"""

from __future__ import annotations

import json
import time

import pytest
from fastapi.testclient import TestClient

from creatorhq.core.config import settings
from creatorhq.infrastructure.calendar.oauth_state import sign_state
from creatorhq.main import app
from creatorhq.wiring.dependencies import get_booking_service, get_calendar, get_payments, get_repository

from conftest import CREATOR_ID

HEADERS = {"X-Creator-Id": CREATOR_ID}
BOOKING = {
    "creator_id": CREATOR_ID,
    "client_name": "Ada Client",
    "client_email": "ada@example.com",
    "service_type": "workshop",
    "booking_date": "2025-06-01T10:00:00Z",
    "duration_minutes": 90,
    "price": "0.01",
}


@pytest.fixture
def client(service, payments, calendar, repository):
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_payments] = lambda: payments
    app.dependency_overrides[get_calendar] = lambda: calendar
    app.dependency_overrides[get_repository] = lambda: repository
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _completed_event(booking_id: str) -> bytes:
    return json.dumps(
        {
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_mock_1",
                    "payment_intent": "pi_1",
                    "amount_total": 7500,
                    "metadata": {"bookingId": booking_id, "creator_id": CREATOR_ID, "type": "booking"},
                }
            },
        }
    ).encode()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_booking_ignores_client_price(client):
    response = client.post("/bookings", json=BOOKING)

    assert response.status_code == 201
    body = response.json()
    assert body["price"] in ("75.00", "75.0", 75.0)
    assert body["status"] == "pending" and body["payment_status"] == "pending"


def test_create_booking_conflict_and_validation(client):
    assert client.post("/bookings", json=BOOKING).status_code == 201

    clash = dict(BOOKING, client_email="bob@example.com", booking_date="2025-06-01T10:30:00Z", duration_minutes=30)
    assert client.post("/bookings", json=clash).status_code == 409

    invalid = client.post("/bookings", json=dict(BOOKING, duration_minutes=5))
    assert invalid.status_code == 422
    assert "duration_minutes" in invalid.json()["detail"]["errors"]

    assert client.post("/bookings", json=dict(BOOKING, creator_id="ghost")).status_code == 404


def test_creator_actions(client):
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]

    assert client.get(f"/bookings/{booking_id}").status_code == 422  # missing creator header
    assert client.get(f"/bookings/{booking_id}", headers={"X-Creator-Id": "other"}).status_code == 404
    assert client.post(f"/bookings/{booking_id}/complete", headers=HEADERS).status_code == 409

    confirmed = client.post(f"/bookings/{booking_id}/confirm", headers=HEADERS)
    assert confirmed.json()["status"] == "confirmed"

    linked = client.post(
        f"/bookings/{booking_id}/meeting-link",
        headers=HEADERS,
        json={"meeting_link": "https://meet.example.com/abc"},
    )
    assert linked.json()["meeting_link"] == "https://meet.example.com/abc"

    moved = client.post(
        f"/bookings/{booking_id}/reschedule", headers=HEADERS, json={"booking_date": "2025-06-02T10:00:00Z"}
    )
    assert moved.status_code == 200

    listed = client.get("/bookings", headers=HEADERS, params={"status": "confirmed"})
    assert [b["id"] for b in listed.json()] == [booking_id]

    cancelled = client.post(f"/bookings/{booking_id}/cancel", headers=HEADERS, json={"reason": "Sick"})
    assert cancelled.json()["cancellation_reason"] == "Sick"


def test_request_payment_and_webhook(client, payments):
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]

    response = client.post(f"/bookings/{booking_id}/request-payment", headers=HEADERS, json={"note": "Thanks"})
    assert response.json() == {"booking_id": booking_id, "payment_link": "https://checkout.mock/cs_mock_1"}

    ack = client.post("/webhooks/stripe", content=_completed_event(booking_id))
    assert ack.status_code == 200
    assert ack.json() == {"received": True, "applied": True, "booking_id": booking_id}

    booking = client.get(f"/bookings/{booking_id}", headers=HEADERS).json()
    assert booking["status"] == "confirmed" and booking["payment_status"] == "paid"

    # redelivery is acknowledged and changes nothing
    assert client.post("/webhooks/stripe", content=_completed_event(booking_id)).status_code == 200


def test_request_payment_provider_failure(client, payments):
    payments.fail = True
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]

    assert client.post(f"/bookings/{booking_id}/request-payment", headers=HEADERS).status_code == 502


def test_webhook_errors(client):
    assert client.post("/webhooks/stripe", content=b"not json").status_code == 400
    assert client.post("/webhooks/stripe", content=b'{"no": "type"}').status_code == 400
    assert client.post("/webhooks/stripe", content=_completed_event("missing")).status_code == 404

    ignored = client.post("/webhooks/stripe", content=json.dumps({"type": "customer.created", "data": {}}).encode())
    assert ignored.json()["applied"] is False


def test_refund_webhook_for_unpaid_booking_is_acknowledged(client):
    booking_id = client.post("/bookings", json=BOOKING).json()["id"]
    event = {
        "id": "evt_2",
        "type": "charge.refunded",
        "data": {"object": {"payment_intent": "pi_1", "metadata": {"bookingId": booking_id}}},
    }

    response = client.post("/webhooks/stripe", content=json.dumps(event).encode())

    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert client.get(f"/bookings/{booking_id}", headers=HEADERS).json()["payment_status"] == "pending"


def test_availability(client):
    client.post("/bookings", json=BOOKING)

    response = client.get(
        f"/creators/{CREATOR_ID}/availability", params={"day": "2025-06-01", "duration_minutes": 30}
    )

    slots = response.json()["slots"]
    assert response.status_code == 200
    assert not any(s.startswith("2025-06-01T10:00") for s in slots)
    assert any(s.startswith("2025-06-01T11:30") for s in slots)


def test_calendar_connect_and_callback(client, repository):
    connect = client.get("/calendar/connect", headers=HEADERS)
    url = connect.json()["authorization_url"]
    state = url.split("state=", 1)[1]

    assert client.get("/calendar/callback", params={"code": "abc", "state": "forged.sig"}).status_code == 400
    stale = sign_state(CREATOR_ID, settings.OAUTH_STATE_SECRET, settings.ENV, issued_at=int(time.time()) - 3600)
    assert client.get("/calendar/callback", params={"code": "abc", "state": stale}).status_code == 400
    assert repository.get_calendar_credential(CREATOR_ID) is None

    callback = client.get("/calendar/callback", params={"code": "abc", "state": state})
    assert callback.json() == {"connected": True, "creator_id": CREATOR_ID}
    assert repository.get_calendar_credential(CREATOR_ID).access_token == "mock-token-abc"


def test_availability_with_unknown_time_zone(client):
    response = client.get(
        f"/creators/{CREATOR_ID}/availability",
        params={"day": "2025-06-02", "duration_minutes": 60, "tz": "Not/AZone"},
    )

    assert response.status_code == 422
    assert "tz" in response.json()["detail"]["errors"]


def test_payment_for_superseded_checkout_is_not_applied(client):
    booking_id = client.post("/bookings", json=dict(BOOKING, duration_minutes=60)).json()["id"]
    client.post(f"/bookings/{booking_id}/request-payment", headers=HEADERS)
    client.post(
        f"/bookings/{booking_id}/reschedule",
        headers=HEADERS,
        json={"booking_date": "2025-06-01T10:00:00Z", "duration_minutes": 90},
    )

    ack = client.post("/webhooks/stripe", content=_completed_event(booking_id))

    assert ack.status_code == 200
    assert ack.json()["applied"] is False
    booking = client.get(f"/bookings/{booking_id}", headers=HEADERS).json()
    assert booking["status"] == "pending" and booking["payment_status"] == "pending"


def test_schedule_management(client):
    saved = client.put(
        "/schedule/availability",
        headers=HEADERS,
        json={"windows": [{"day_of_week": 1, "start_time": "10:00", "end_time": "11:00"}]},
    )
    assert saved.status_code == 200
    assert saved.json()["windows"][0]["start_time"] == "10:00:00"

    blocked = client.post(
        "/schedule/blocked-dates", headers=HEADERS, json={"start_date": "2025-06-09", "reason": "Holiday"}
    )
    assert blocked.status_code == 201
    assert blocked.json() == {"start_date": "2025-06-09", "end_date": "2025-06-09", "reason": "Holiday"}

    schedule = client.get(f"/creators/{CREATOR_ID}/schedule").json()
    assert len(schedule["windows"]) == 1 and len(schedule["blocked_dates"]) == 1

    open_day = client.get(f"/creators/{CREATOR_ID}/availability", params={"day": "2025-06-02", "duration_minutes": 30})
    assert [s[11:16] for s in open_day.json()["slots"]] == ["10:00", "10:30"]
    closed_day = client.get(f"/creators/{CREATOR_ID}/availability", params={"day": "2025-06-09", "duration_minutes": 30})
    assert closed_day.json()["slots"] == []

    invalid = client.put(
        "/schedule/availability",
        headers=HEADERS,
        json={"windows": [{"day_of_week": 1, "start_time": "11:00", "end_time": "10:00"}]},
    )
    assert invalid.status_code == 422
    assert client.get("/creators/ghost/schedule").status_code == 404
