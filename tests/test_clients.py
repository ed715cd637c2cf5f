from conftest import auth_headers, create_booking, create_client


def test_create_and_list_clients(client, headers):
    client_id = create_client(client, headers, name="Alex Bride")

    fetched = client.get(f"/clients/{client_id}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["full_name"] == "Alex Bride"

    listing = client.get("/clients", headers=headers).json()["data"]
    assert listing["total"] == 1


def test_invalid_email_is_rejected(client, headers):
    resp = client.post("/clients", json={"full_name": "Bad Email", "email": "nope"}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


def test_clients_are_owner_scoped(client, headers, other_user):
    client_id = create_client(client, headers)

    resp = client.get(f"/clients/{client_id}", headers=auth_headers(other_user))
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "CLIENT_NOT_FOUND"


def test_update_client_changes_only_given_fields(client, headers):
    client_id = create_client(client, headers, name="Alex Bride", email="alex@example.com")

    resp = client.put(f"/clients/{client_id}", json={"phone": "555-0199", "full_name": None}, headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["phone"] == "555-0199"
    assert data["full_name"] == "Alex Bride"
    assert data["email"] == "alex@example.com"


def test_empty_client_update_is_invalid(client, headers):
    client_id = create_client(client, headers)

    resp = client.put(f"/clients/{client_id}", json={}, headers=headers)
    assert resp.status_code == 422


def test_delete_client_without_bookings(client, headers):
    client_id = create_client(client, headers)

    resp = client.delete(f"/clients/{client_id}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/clients/{client_id}", headers=headers).status_code == 404


def test_delete_client_with_booking_is_conflict(client, headers):
    client_id = create_client(client, headers)
    create_booking(client, headers, client_id)

    resp = client.delete(f"/clients/{client_id}", headers=headers)
    assert resp.status_code == 409
    body = resp.json()
    assert body["error_code"] == "CLIENT_HAS_RELATED_RECORDS"
    assert body["details"] == {"bookings": 1, "invoices": 0}


def test_other_user_cannot_delete_client(client, headers, other_user):
    client_id = create_client(client, headers)

    resp = client.delete(f"/clients/{client_id}", headers=auth_headers(other_user))
    assert resp.status_code == 404
    assert client.get(f"/clients/{client_id}", headers=headers).status_code == 200
