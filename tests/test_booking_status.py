from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from lensmanager.core.exceptions import AppException
from lensmanager.constants.error_codes import ErrorCode
from lensmanager.models.enums.booking_status import BookingStatus
from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus
from lensmanager.services.bookings import booking_service

from conftest import (
    add_schedule_line,
    auth_headers,
    create_booking,
    create_client,
    list_schedules,
    run,
    set_booking_status,
    set_invoice_status,
)


def _invoices_for(client, headers, booking_id):
    resp = client.get("/invoices", params={"booking_id": booking_id}, headers=headers)
    assert resp.status_code == 200
    return resp.json()["data"]["items"]


def test_new_booking_starts_pending(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    assert booking["status"] == "pending"
    assert Decimal(booking["total_amount"]) == Decimal("1200")


def test_confirm_creates_draft_invoice_from_booking(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1200.00", deposit="400.00")

    resp = set_booking_status(client, headers, booking["id"], "confirmed")
    assert resp.status_code == 200
    data = resp.json()["data"]

    assert data["old_status"] == "pending"
    assert data["new_status"] == "confirmed"
    assert data["booking"]["status"] == "confirmed"
    assert data["invoice"]["status"] == "created"
    assert data["invoice_warning"] is None

    expected_number = f"INV-{date.today():%Y%m%d}-{booking['id']:04d}"
    assert data["invoice_number"] == expected_number

    invoice = client.get(f"/invoices/{data['invoice_id']}", headers=headers).json()["data"]
    assert invoice["status"] == "draft"
    assert invoice["client_id"] == client_id
    assert invoice["booking_id"] == booking["id"]
    assert Decimal(invoice["subtotal"]) == Decimal("1200")
    assert Decimal(invoice["tax_amount"]) == Decimal("0")
    assert Decimal(invoice["total_amount"]) == Decimal("1200")
    assert Decimal(invoice["deposit_amount"]) == Decimal("400")
    assert invoice["issue_date"] == date.today().isoformat()


def test_repeated_confirmation_creates_one_invoice(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    first = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]
    second = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]

    assert first["invoice"]["status"] == "created"
    assert second["invoice"]["status"] == "skipped"
    assert second["invoice_id"] == first["invoice_id"]
    assert len(_invoices_for(client, headers, booking["id"])) == 1


def test_cancel_cascades_to_invoices_and_schedule_lines(client, headers, user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1000.00", deposit="300.00")
    invoice_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]
    assert set_invoice_status(client, headers, invoice_id, "pending").status_code == 200
    direct_line = add_schedule_line(user.id, amount="150.00", booking_id=booking["id"])

    resp = set_booking_status(client, headers, booking["id"], "cancelled")
    assert resp.status_code == 200
    cascade = resp.json()["data"]["cascade"]
    assert cascade["applied"] is True
    assert cascade["invoices_cancelled"] == 1
    assert cascade["schedules_cancelled"] == 3

    invoice = client.get(f"/invoices/{invoice_id}", headers=headers).json()["data"]
    assert invoice["status"] == "cancelled"
    assert {s["status"] for s in invoice["payment_schedules"]} == {"cancelled"}

    direct = client.get(f"/payment-schedules/{direct_line}", headers=headers).json()["data"]
    assert direct["status"] == "cancelled"


def test_cancel_by_client_cascades_like_cancel(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    invoice_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]

    resp = set_booking_status(client, headers, booking["id"], "cancel_by_client")
    assert resp.status_code == 200

    invoice = client.get(f"/invoices/{invoice_id}", headers=headers).json()["data"]
    assert invoice["status"] == "cancelled"


def test_cancel_settles_client_cancelled_invoices_and_their_lines(client, headers, user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    invoice_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]
    assert set_invoice_status(client, headers, invoice_id, "cancel_by_client").status_code == 200
    leftover = add_schedule_line(user.id, amount="100.00", invoice_id=invoice_id, booking_id=booking["id"])

    resp = set_booking_status(client, headers, booking["id"], "cancelled")
    assert resp.status_code == 200
    cascade = resp.json()["data"]["cascade"]
    assert cascade["invoices_cancelled"] == 1
    assert cascade["schedules_cancelled"] == 1

    invoice = client.get(f"/invoices/{invoice_id}", headers=headers).json()["data"]
    assert invoice["status"] == "cancelled"

    line = client.get(f"/payment-schedules/{leftover}", headers=headers).json()["data"]
    assert line["status"] == "cancelled"


def test_cancel_leaves_paid_invoices_and_completed_lines(client, headers, user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    paid_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]
    set_invoice_status(client, headers, paid_id, "pending")
    set_invoice_status(client, headers, paid_id, "paid")
    completed_line = add_schedule_line(
        user.id,
        amount="200.00",
        booking_id=booking["id"],
        status=PaymentScheduleStatus.completed,
    )

    resp = set_booking_status(client, headers, booking["id"], "cancelled")
    assert resp.status_code == 200
    assert resp.json()["data"]["cascade"]["invoices_cancelled"] == 0

    invoice = client.get(f"/invoices/{paid_id}", headers=headers).json()["data"]
    assert invoice["status"] == "paid"
    assert {s["status"] for s in invoice["payment_schedules"]} == {"pending"}

    line = client.get(f"/payment-schedules/{completed_line}", headers=headers).json()["data"]
    assert line["status"] == "completed"


def test_completed_status_has_no_side_effects(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    data = set_booking_status(client, headers, booking["id"], "completed").json()["data"]

    assert data["new_status"] == "completed"
    assert data["invoice"]["status"] == "not_applicable"
    assert data["cascade"]["applied"] is False
    assert _invoices_for(client, headers, booking["id"]) == []


def test_unknown_status_is_rejected_before_write(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    resp = set_booking_status(client, headers, booking["id"], "archived")
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"

    current = client.get(f"/bookings/{booking['id']}", headers=headers).json()["data"]
    assert current["status"] == "pending"


def test_other_users_booking_is_not_found_and_untouched(client, headers, other_user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    resp = set_booking_status(client, auth_headers(other_user), booking["id"], "cancelled")
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "BOOKING_NOT_FOUND"

    current = client.get(f"/bookings/{booking['id']}", headers=headers).json()["data"]
    assert current["status"] == "pending"


def test_invoice_failure_keeps_status_and_reports_warning(client, headers, monkeypatch):
    async def broken_invoice(db, booking):
        raise OperationalError("INSERT INTO invoices", {}, Exception("database is locked"))

    monkeypatch.setattr(booking_service, "create_invoice_for_booking", broken_invoice)

    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    resp = set_booking_status(client, headers, booking["id"], "confirmed")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["booking"]["status"] == "confirmed"
    assert data["invoice"]["status"] == "failed"
    assert data["invoice_id"] is None
    assert "create it manually" in data["invoice_warning"]
    assert _invoices_for(client, headers, booking["id"]) == []


def test_cascade_failure_rolls_back_only_the_cascade(client, headers, monkeypatch):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    invoice_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]

    async def broken_cancel(db, **kwargs):
        raise SQLAlchemyError("lock timeout")

    monkeypatch.setattr(booking_service, "cancel_invoice_payment_schedules", broken_cancel)

    resp = set_booking_status(client, headers, booking["id"], "cancelled")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["booking"]["status"] == "cancelled"
    assert data["cascade"]["failed"] is True

    invoice = client.get(f"/invoices/{invoice_id}", headers=headers).json()["data"]
    assert invoice["status"] == "draft"


class _FailingSession:
    def __init__(self):
        self.rolled_back = False

    async def flush(self):
        raise OperationalError("UPDATE bookings", {}, Exception("disk I/O error"))

    async def rollback(self):
        self.rolled_back = True

    def begin_nested(self):
        raise AssertionError("side effects must not run after a failed status write")


def test_failed_status_write_raises_and_skips_side_effects():
    db = _FailingSession()
    booking = SimpleNamespace(id=7, status=BookingStatus.pending)

    with pytest.raises(AppException) as exc:
        run(booking_service.apply_booking_status(db, booking, BookingStatus.confirmed))

    assert exc.value.status_code == 500
    assert exc.value.error_code == ErrorCode.BOOKING_UPDATE_FAILED
    assert db.rolled_back is True


def test_patch_with_status_runs_transition(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    resp = client.patch(
        f"/bookings/{booking['id']}",
        json={"notes": "Bring drone", "status": "confirmed"},
        headers=headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["booking"]["notes"] == "Bring drone"
    assert data["booking"]["status"] == "confirmed"
    assert data["invoice"]["status"] == "created"


def test_patch_rejects_deposit_above_total(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="500.00", deposit="100.00")

    resp = client.patch(f"/bookings/{booking['id']}", json={"deposit_amount": "600.00"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "BOOKING_INVALID_AMOUNTS"


def test_create_booking_for_foreign_client_is_not_found(client, headers, other_user):
    foreign_client = create_client(client, auth_headers(other_user), name="Other Client")

    resp = client.post(
        "/bookings",
        json={"client_id": foreign_client, "booking_date": "2031-01-01"},
        headers=headers,
    )
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "CLIENT_NOT_FOUND"


def test_delete_refused_while_billing_is_active(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    set_booking_status(client, headers, booking["id"], "confirmed")

    resp = client.delete(f"/bookings/{booking['id']}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "BOOKING_HAS_ACTIVE_BILLING"

    set_booking_status(client, headers, booking["id"], "cancelled")
    resp = client.delete(f"/bookings/{booking['id']}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/bookings/{booking['id']}", headers=headers).status_code == 404


def test_list_bookings_is_owner_scoped(client, headers, other_user):
    client_id = create_client(client, headers)
    create_booking(client, headers, client_id)
    other_headers = auth_headers(other_user)
    other_client = create_client(client, other_headers, name="Other Client")
    create_booking(client, other_headers, other_client)

    resp = client.get("/bookings", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["total"] == 1
    assert list_schedules(client, headers) == []
