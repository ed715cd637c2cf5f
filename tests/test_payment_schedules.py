from datetime import date
from decimal import Decimal

from conftest import (
    auth_headers,
    create_booking,
    create_client,
    set_booking_status,
)


def post_line(client, headers, amount, **extra):
    payload = {
        "payment_name": "Second Shooter",
        "due_date": date.today().isoformat(),
        "amount": amount,
        **extra,
    }
    return client.post("/payment-schedules", json=payload, headers=headers)


def pay(client, headers, schedule_id, amount):
    resp = client.post(
        f"/payment-schedules/{schedule_id}/installments",
        json={"amount": amount},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_booking_line_is_cancelled_with_its_booking(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1200.00")

    resp = post_line(client, headers, "300.00", booking_id=booking["id"], schedule_type="milestone")
    assert resp.status_code == 201
    line = resp.json()["data"]
    assert line["invoice_id"] is None
    assert line["schedule_type"] == "milestone"
    assert line["status"] == "pending"

    cancelled = set_booking_status(client, headers, booking["id"], "cancelled")
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["cascade"]["schedules_cancelled"] == 1

    fetched = client.get(f"/payment-schedules/{line['id']}", headers=headers).json()["data"]
    assert fetched["status"] == "cancelled"


def test_invoice_line_takes_the_invoice_booking(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    invoice_id = set_booking_status(client, headers, booking["id"], "confirmed").json()["data"]["invoice_id"]

    resp = post_line(client, headers, "200.00", invoice_id=invoice_id)
    assert resp.status_code == 201
    line = resp.json()["data"]
    assert line["invoice_id"] == invoice_id
    assert line["booking_id"] == booking["id"]
    assert line["schedule_type"] == "custom"


def test_lines_cannot_exceed_the_total(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1200.00")

    assert post_line(client, headers, "1000.00", booking_id=booking["id"]).status_code == 201

    resp = post_line(client, headers, "300.00", booking_id=booking["id"])
    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "PAYMENT_SCHEDULE_EXCEEDS_TOTAL"
    assert Decimal(body["details"]["scheduled"]) == Decimal("1000")


def test_line_needs_an_invoice_or_booking(client, headers):
    resp = post_line(client, headers, "100.00")
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


def test_cancelled_booking_takes_no_new_lines(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    set_booking_status(client, headers, booking["id"], "cancel_by_client")

    resp = post_line(client, headers, "100.00", booking_id=booking["id"])
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "BOOKING_INVALID_STATE"


def test_other_users_booking_is_not_found(client, headers, other_user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)

    resp = post_line(client, auth_headers(other_user), "100.00", booking_id=booking["id"])
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "BOOKING_NOT_FOUND"


def test_amount_change_recomputes_status_within_total(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1200.00")
    line = post_line(client, headers, "500.00", booking_id=booking["id"]).json()["data"]
    pay(client, headers, line["id"], "300.00")

    lowered = client.put(f"/payment-schedules/{line['id']}", json={"amount": "300.00"}, headers=headers)
    assert lowered.status_code == 200
    assert lowered.json()["data"]["status"] == "completed"

    raised = client.put(f"/payment-schedules/{line['id']}", json={"amount": "1200.00"}, headers=headers)
    assert raised.status_code == 200
    assert raised.json()["data"]["status"] == "pending"

    too_much = client.put(f"/payment-schedules/{line['id']}", json={"amount": "1300.00"}, headers=headers)
    assert too_much.status_code == 400
    assert too_much.json()["error_code"] == "PAYMENT_SCHEDULE_EXCEEDS_TOTAL"


def test_empty_update_is_invalid(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    line = post_line(client, headers, "100.00", booking_id=booking["id"]).json()["data"]

    resp = client.put(f"/payment-schedules/{line['id']}", json={}, headers=headers)
    assert resp.status_code == 422


def test_delete_line_without_payments(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    line = post_line(client, headers, "100.00", booking_id=booking["id"]).json()["data"]

    resp = client.delete(f"/payment-schedules/{line['id']}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/payment-schedules/{line['id']}", headers=headers).status_code == 404


def test_delete_line_with_payments_is_conflict(client, headers):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id)
    line = post_line(client, headers, "100.00", booking_id=booking["id"]).json()["data"]
    pay(client, headers, line["id"], "50.00")

    resp = client.delete(f"/payment-schedules/{line['id']}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "PAYMENT_SCHEDULE_HAS_PAYMENTS"


def test_all_installments_are_listed_per_owner(client, headers, other_user):
    client_id = create_client(client, headers)
    booking = create_booking(client, headers, client_id, total="1200.00")
    first = post_line(client, headers, "400.00", booking_id=booking["id"]).json()["data"]
    second = post_line(client, headers, "400.00", booking_id=booking["id"]).json()["data"]
    pay(client, headers, first["id"], "150.00")
    pay(client, headers, second["id"], "250.00")

    resp = client.get("/payment-schedules/installments", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 2
    assert {i["payment_schedule_id"] for i in data["items"]} == {first["id"], second["id"]}

    foreign = client.get("/payment-schedules/installments", headers=auth_headers(other_user)).json()["data"]
    assert foreign == {"total": 0, "items": []}
