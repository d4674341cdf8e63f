import importlib

import pytest
from fastapi.testclient import TestClient

import database


@pytest.fixture
def client(tmp_path, monkeypatch):
    # Point the database helpers at a per-test file, then reload api so its
    # module-level service is built against it
    monkeypatch.setattr(database, "DATABASE_FILE", str(tmp_path / "api_test.db"))

    import api as api_module
    importlib.reload(api_module)

    with TestClient(api_module.app) as test_client:
        yield test_client


@pytest.fixture
def seeded(client):
    user = client.post("/users", json={"name": "Juan Pérez", "email": "juan@example.com"}).json()
    client.post("/books", json={
        "external_id": 258027,
        "title": "The Lord of the Rings",
        "price": "15.99",
        "stock_quantity": 10,
        "available_quantity": 5,
    })
    return user


def _reserve(client, user_id, book_id=258027, days=7, start="2024-01-01"):
    return client.post("/reservations", json={
        "user_id": user_id,
        "book_external_id": book_id,
        "rental_days": days,
        "start_date": start,
    })


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_create_reservation(client, seeded):
    response = _reserve(client, seeded["id"])
    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == seeded["id"]
    assert body["book_external_id"] == 258027
    assert body["status"] == "ACTIVE"
    assert body["daily_rate"] == "15.99"
    assert body["total_fee"] == "111.93"
    assert body["expected_return_date"] == "2024-01-08"
    assert body["actual_return_date"] is None
    assert body["late_fee"] == "0.00"

    assert client.get("/books/258027").json()["available_quantity"] == 4


def test_late_return_then_double_return(client, seeded):
    reservation_id = _reserve(client, seeded["id"]).json()["id"]

    response = client.post(f"/reservations/{reservation_id}/return", json={"return_date": "2024-01-11"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OVERDUE"
    assert body["late_fee"] == "7.20"
    assert body["actual_return_date"] == "2024-01-11"
    assert client.get("/books/258027").json()["available_quantity"] == 5

    overdue = client.get("/reservations/overdue").json()
    assert [r["id"] for r in overdue] == [reservation_id]

    again = client.post(f"/reservations/{reservation_id}/return", json={"return_date": "2024-01-12"})
    assert again.status_code == 409
    assert again.json()["code"] == "conflict"


def test_on_time_return(client, seeded):
    reservation_id = _reserve(client, seeded["id"]).json()["id"]

    response = client.post(f"/reservations/{reservation_id}/return", json={"return_date": "2024-01-08"})
    assert response.status_code == 200
    assert response.json()["status"] == "RETURNED"
    assert response.json()["late_fee"] == "0.00"


def test_queries(client, seeded):
    _reserve(client, seeded["id"])
    _reserve(client, seeded["id"], days=3)

    assert len(client.get("/reservations").json()) == 2
    assert len(client.get("/reservations/active").json()) == 2
    assert len(client.get("/reservations", params={"status": "returned"}).json()) == 0
    assert len(client.get(f"/users/{seeded['id']}/reservations").json()) == 2
    assert client.get("/reservations/1").json()["rental_days"] == 7


def test_list_users_and_books(client, seeded):
    users = client.get("/users").json()
    assert [u["email"] for u in users] == ["juan@example.com"]

    books = client.get("/books").json()
    assert books[0]["external_id"] == 258027
    assert books[0]["price"] == "15.99"
    assert books[0]["available_quantity"] == 5


def test_unknown_reservation(client):
    response = client.get("/reservations/999")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_unknown_user_and_book(client, seeded):
    assert _reserve(client, 999).json()["code"] == "not_found"
    assert _reserve(client, seeded["id"], book_id=1).status_code == 404
    assert client.get("/users/999/reservations").status_code == 404


def test_no_stock_is_unavailable(client, seeded):
    client.post("/books", json={
        "external_id": 7, "title": "Out of Print", "price": "3.00",
        "stock_quantity": 1, "available_quantity": 0,
    })

    response = _reserve(client, seeded["id"], book_id=7)
    assert response.status_code == 409
    assert response.json()["code"] == "book_unavailable"
    assert client.get("/reservations").json() == []


@pytest.mark.parametrize("days", [0, -2])
def test_non_positive_rental_days(client, seeded, days):
    response = _reserve(client, seeded["id"], days=days)
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


def test_malformed_date(client, seeded):
    response = _reserve(client, seeded["id"], start="2024-02-30")
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


def test_unknown_status_filter(client):
    response = client.get("/reservations", params={"status": "LOST"})
    assert response.status_code == 400


def test_duplicate_user_email(client, seeded):
    response = client.post("/users", json={"name": "Copy", "email": "juan@example.com"})
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


def test_reservation_period_past_calendar_range(client, seeded):
    response = _reserve(client, seeded["id"], days=5_000_000)
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"

    response = _reserve(client, seeded["id"], days=1, start="9999-12-31")
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"

    assert client.get("/reservations").json() == []
    assert client.get("/books/258027").json()["available_quantity"] == 5


@pytest.mark.parametrize("path", [
    "/reservations/1180591620717411303424",
    "/users/1180591620717411303424",
    "/users/1180591620717411303424/reservations",
    "/books/1180591620717411303424",
])
def test_ids_beyond_integer_range_are_not_found(client, path):
    response = client.get(path)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_return_with_id_beyond_integer_range(client):
    response = client.post("/reservations/1180591620717411303424/return", json={"return_date": "2024-01-08"})
    assert response.status_code == 404
