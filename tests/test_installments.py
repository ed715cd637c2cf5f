from decimal import Decimal

from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus

from conftest import add_schedule_line, auth_headers


def pay(client, headers, schedule_id, amount, **extra):
    return client.post(
        f"/payment-schedules/{schedule_id}/installments",
        json={"amount": amount, **extra},
        headers=headers,
    )


def test_installments_accumulate_until_line_is_completed(client, headers, user):
    line = add_schedule_line(user.id, amount="500.00")

    first = pay(client, headers, line, "200.00", payment_method="bank_transfer")
    assert first.status_code == 201
    schedule = first.json()["data"]["schedule"]
    assert Decimal(schedule["paid_amount"]) == Decimal("200")
    assert schedule["status"] == "pending"
    assert schedule["payment_method"] == "bank_transfer"

    second = pay(client, headers, line, "300.00")
    schedule = second.json()["data"]["schedule"]
    assert Decimal(schedule["paid_amount"]) == Decimal("500")
    assert schedule["status"] == "completed"

    installments = client.get(f"/payment-schedules/{line}/installments", headers=headers).json()["data"]
    assert [Decimal(i["amount"]) for i in installments] == [Decimal("200"), Decimal("300")]


def test_cancelled_line_rejects_payment(client, headers, user):
    line = add_schedule_line(user.id, amount="500.00", status=PaymentScheduleStatus.cancelled)

    resp = pay(client, headers, line, "100.00")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "PAYMENT_SCHEDULE_INVALID_STATE"


def test_non_positive_amount_is_invalid(client, headers, user):
    line = add_schedule_line(user.id, amount="500.00")

    resp = pay(client, headers, line, "0")
    assert resp.status_code == 422


def test_other_users_line_is_not_found(client, user, other_user):
    line = add_schedule_line(user.id, amount="500.00")

    resp = pay(client, auth_headers(other_user), line, "100.00")
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "PAYMENT_SCHEDULE_NOT_FOUND"
