import asyncio
import os
import tempfile
from datetime import date
from decimal import Decimal

_TMP_DIR = tempfile.mkdtemp(prefix="lensmanager-tests-")

os.environ["APP_ENV"] = "development"
os.environ["DB_TYPE"] = "sqlite"
os.environ["SQLITE_PATH"] = os.path.join(_TMP_DIR, "test.db")
os.environ["JWT_ACCESS_SECRET_KEY"] = "test-secret-key"
os.environ["EMAIL_LOG_FILE"] = os.path.join(_TMP_DIR, "email.log")
os.environ["APP_BASE_URL"] = "http://testserver"
os.environ["ENABLE_SCHEDULER"] = "false"

import pytest
from fastapi.testclient import TestClient

from lensmanager.core.db import Base, engine, AsyncSessionLocal
from lensmanager.core.security import create_access_token
from lensmanager.models.users.user_models import User
from lensmanager.models.billing.payment_schedule_models import PaymentSchedule
from lensmanager.models.enums.payment_schedule_status import PaymentScheduleStatus, PaymentScheduleType
from lensmanager.services.notifications.email_notifier import EmailNotifier, get_notifier
from main import app


def run(coro):
    return asyncio.run(coro)


async def _reset_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def setup_db():
    run(_reset_db())
    yield
    app.dependency_overrides.clear()


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        super().__init__(sender="studio@example.com")
        self.sent = []

    def notify(self, recipient, template, data):
        result = super().notify(recipient, template, data)
        self.sent.append((recipient, template, data, result))
        return result


@pytest.fixture
def notifier():
    recorder = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: recorder
    return recorder


@pytest.fixture
def client():
    return TestClient(app)


async def _create_user(email: str, full_name: str, business_name: str | None, is_active: bool) -> User:
    async with AsyncSessionLocal() as db:
        user = User(
            email=email,
            full_name=full_name,
            business_name=business_name,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user


def create_user(
    email: str = "studio@example.com",
    full_name: str = "Sam Shutter",
    business_name: str | None = "Shutter Studio",
    is_active: bool = True,
) -> User:
    return run(_create_user(email, full_name, business_name, is_active))


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def user():
    return create_user()


@pytest.fixture
def other_user():
    return create_user(email="rival@example.com", full_name="Rita Rival", business_name=None)


@pytest.fixture
def headers(user):
    return auth_headers(user)


def create_client(client: TestClient, headers: dict, name: str = "Alex Bride", email: str | None = "alex@example.com") -> int:
    resp = client.post(
        "/clients",
        json={"full_name": name, "email": email, "phone": "555-0100"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


def create_booking(
    client: TestClient,
    headers: dict,
    client_id: int,
    total: str = "1200.00",
    deposit: str = "400.00",
    **extra,
) -> dict:
    payload = {
        "client_id": client_id,
        "booking_date": "2031-06-14",
        "title": "Wedding",
        "location": "Lakeside Hall",
        "total_amount": total,
        "deposit_amount": deposit,
        **extra,
    }
    resp = client.post("/bookings", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def set_booking_status(client: TestClient, headers: dict, booking_id: int, status: str):
    return client.put(f"/bookings/{booking_id}/status", json={"status": status}, headers=headers)


def set_invoice_status(client: TestClient, headers: dict, invoice_id: int, status: str):
    return client.put(f"/invoices/{invoice_id}", json={"status": status}, headers=headers)


def list_schedules(client: TestClient, headers: dict, **params) -> list:
    resp = client.get("/payment-schedules", params=params, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["items"]


async def _add_schedule_line(**values) -> int:
    async with AsyncSessionLocal() as db:
        line = PaymentSchedule(**values)
        db.add(line)
        await db.commit()
        return line.id


def add_schedule_line(
    user_id: int,
    *,
    amount: str,
    booking_id: int | None = None,
    invoice_id: int | None = None,
    status: PaymentScheduleStatus = PaymentScheduleStatus.pending,
    name: str = "Album Payment",
) -> int:
    return run(
        _add_schedule_line(
            user_id=user_id,
            booking_id=booking_id,
            invoice_id=invoice_id,
            payment_name=name,
            schedule_type=PaymentScheduleType.custom,
            due_date=date.today(),
            amount=Decimal(amount),
            paid_amount=Decimal(amount) if status == PaymentScheduleStatus.completed else Decimal("0.00"),
            status=status,
        )
    )
