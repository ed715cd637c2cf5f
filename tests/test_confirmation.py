from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from sqlalchemy import update

from lensmanager.core.db import AsyncSessionLocal
from lensmanager.models.bookings.booking_models import Booking
from lensmanager.services.bookings.confirmation_expiry_service import clear_expired_confirmation_tokens

from conftest import create_booking, create_client, run, set_booking_status


def request_confirmation(client, headers, booking_id):
    return client.post(f"/bookings/{booking_id}/confirmation-request", headers=headers)


def token_from(data) -> str:
    return parse_qs(urlparse(data["confirmation_url"]).query)["token"][0]


async def _expire_token(booking_id: int):
    async with AsyncSessionLocal() as db:
        await db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(confirmation_token_expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
        )
        await db.commit()


async def _clear_expired():
    async with AsyncSessionLocal() as db:
        return await clear_expired_confirmation_tokens(db)


def test_request_emails_client_a_confirmation_link(client, headers, notifier):
    client_id = create_client(client, headers, email="alex@example.com")
    booking = create_booking(client, headers, client_id)

    resp = request_confirmation(client, headers, booking["id"])
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["confirmation_url"].startswith("http://testserver/confirm-booking?token=")
    assert data["notification_status"] == "sent"

    recipient, template, payload, result = notifier.sent[-1]
    assert recipient == "alex@example.com"
    assert template == "booking_confirmation_request"
    assert payload["business_name"] == "Shutter Studio"
    assert payload["confirmation_url"] == data["confirmation_url"]
    assert result.sent


def test_request_requires_pending_booking(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    set_booking_status(client, headers, booking["id"], "completed")

    resp = request_confirmation(client, headers, booking["id"])
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "BOOKING_INVALID_STATE"
    assert notifier.sent == []


def test_request_requires_client_email(client, headers, notifier):
    client_id = create_client(client, headers, email=None)
    booking = create_booking(client, headers, client_id)

    resp = request_confirmation(client, headers, booking["id"])
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "CLIENT_EMAIL_MISSING"


def test_client_confirms_booking_and_invoice_is_created(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="900.00", deposit="300.00")
    token = token_from(request_confirmation(client, headers, booking["id"]).json()["data"])

    resp = client.get("/confirm-booking", params={"token": token})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["already_confirmed"] is False
    assert data["status"] == "confirmed"
    assert data["invoice_id"] is not None
    assert data["invoice_warning"] is None

    invoice = client.get(f"/invoices/{data['invoice_id']}", headers=headers).json()["data"]
    assert invoice["booking_id"] == booking["id"]
    assert invoice["status"] == "draft"

    recipient, template, _, _ = notifier.sent[-1]
    assert recipient == "studio@example.com"
    assert template == "booking_confirmed"


def test_token_cannot_be_reused_after_confirmation(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    token = token_from(request_confirmation(client, headers, booking["id"]).json()["data"])

    assert client.get("/confirm-booking", params={"token": token}).status_code == 200

    resp = client.get("/confirm-booking", params={"token": token})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "CONFIRMATION_TOKEN_INVALID"


def test_already_confirmed_booking_reports_it(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    token = token_from(request_confirmation(client, headers, booking["id"]).json()["data"])
    set_booking_status(client, headers, booking["id"], "confirmed")

    resp = client.get("/confirm-booking", params={"token": token})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Booking already confirmed"
    assert resp.json()["data"]["already_confirmed"] is True


def test_cancelled_booking_cannot_be_confirmed(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    token = token_from(request_confirmation(client, headers, booking["id"]).json()["data"])
    set_booking_status(client, headers, booking["id"], "cancelled")

    resp = client.get("/confirm-booking", params={"token": token})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "BOOKING_INVALID_STATE"


def test_expired_token_is_rejected(client, headers, notifier):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    token = token_from(request_confirmation(client, headers, booking["id"]).json()["data"])
    run(_expire_token(booking["id"]))

    resp = client.get("/confirm-booking", params={"token": token})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "CONFIRMATION_TOKEN_EXPIRED"

    current = client.get(f"/bookings/{booking['id']}", headers=headers).json()["data"]
    assert current["status"] == "pending"


def test_unknown_and_missing_tokens(client):
    unknown = client.get("/confirm-booking", params={"token": "not-a-real-token"})
    assert unknown.status_code == 404
    assert unknown.json()["error_code"] == "CONFIRMATION_TOKEN_INVALID"

    missing = client.get("/confirm-booking")
    assert missing.status_code == 400
    assert missing.json()["error_code"] == "CONFIRMATION_TOKEN_REQUIRED"


def test_expired_tokens_are_cleared(client, headers, notifier):
    client_id = create_client(client, headers)
    stale = create_booking(client, headers, client_id)
    fresh = create_booking(client, headers, client_id)
    stale_token = token_from(request_confirmation(client, headers, stale["id"]).json()["data"])
    fresh_token = token_from(request_confirmation(client, headers, fresh["id"]).json()["data"])
    run(_expire_token(stale["id"]))

    assert run(_clear_expired()) == 1

    assert client.get("/confirm-booking", params={"token": stale_token}).status_code == 404
    assert client.get("/confirm-booking", params={"token": fresh_token}).status_code == 200
    current = client.get(f"/bookings/{stale['id']}", headers=headers).json()["data"]
    assert current["status"] == "pending"
