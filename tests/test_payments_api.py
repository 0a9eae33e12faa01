import pytest
from decimal import Decimal

from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def create_invoice(client: TestClient, client_name: str, minutes: int = 60, rate: str = "1000"):
    resp = client.post("/api/clients", json={"name": client_name})
    assert resp.status_code == 201
    resp = client.post("/api/matters", json={"client_id": resp.json()["id"], "name": f"{client_name} matter"})
    assert resp.status_code == 201
    matter_id = resp.json()["id"]
    resp = client.post(
        "/api/time-entries",
        json={
            "matter_id": matter_id,
            "description": "Advice",
            "duration_minutes": minutes,
            "hourly_rate": rate,
            "date": "2030-01-02",
        },
    )
    assert resp.status_code == 201
    resp = client.post("/api/invoices", json={"matter_id": matter_id})
    assert resp.status_code == 201
    return resp.json()


def pay(client: TestClient, invoice_id: int, amount: str, paid_on: str, method: str = "bank_transfer"):
    resp = client.post(
        f"/api/invoices/{invoice_id}/payments",
        json={"amount": amount, "date": paid_on, "method": method},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_list_payments_filters():
    client = TestClient(app)
    first = create_invoice(client, "Acme Corp")
    second = create_invoice(client, "Beta LLP")
    pay(client, first["id"], "100.00", "2030-01-10", "check")
    pay(client, first["id"], "250.00", "2030-02-10")
    pay(client, second["id"], "75.25", "2030-03-01", "cash")

    resp = client.get("/api/payments")
    assert resp.status_code == 200
    assert [p["paid_on"] for p in resp.json()] == ["2030-03-01", "2030-02-10", "2030-01-10"]

    resp = client.get("/api/payments", params={"invoice_id": first["id"]})
    assert {Decimal(p["amount"]) for p in resp.json()} == {Decimal("100.00"), Decimal("250.00")}

    resp = client.get("/api/payments", params={"min_amount": "80", "max_amount": "200"})
    assert [Decimal(p["amount"]) for p in resp.json()] == [Decimal("100.00")]

    resp = client.get("/api/payments", params={"from_date": "2030-02-01", "to_date": "2030-02-28"})
    assert [p["paid_on"] for p in resp.json()] == ["2030-02-10"]

    resp = client.get("/api/payments", params={"method": "cash"})
    assert [p["invoice_id"] for p in resp.json()] == [second["id"]]


def test_list_payments_sorting():
    client = TestClient(app)
    invoice = create_invoice(client, "Acme Corp")
    pay(client, invoice["id"], "300.00", "2030-01-10")
    pay(client, invoice["id"], "20.00", "2030-01-11")
    pay(client, invoice["id"], "150.00", "2030-01-12")

    resp = client.get("/api/payments", params={"sort_by": "amount", "sort_order": "asc"})
    assert [Decimal(p["amount"]) for p in resp.json()] == [Decimal("20.00"), Decimal("150.00"), Decimal("300.00")]

    assert client.get("/api/payments", params={"sort_by": "reference"}).status_code == 400
    assert client.get("/api/payments", params={"sort_order": "up"}).status_code == 400


def test_payment_defaults_to_today_and_bank_transfer():
    client = TestClient(app)
    invoice = create_invoice(client, "Acme Corp")

    resp = client.post(f"/api/invoices/{invoice['id']}/payments", json={"amount": "10"})
    assert resp.status_code == 201
    payment = resp.json()["payments"][0]
    assert payment["method"] == "bank_transfer"
    assert payment["paid_on"]

    resp = client.post(f"/api/invoices/{invoice['id']}/payments", json={"amount": "10", "method": "barter"})
    assert resp.status_code == 422


def test_list_payments_rejects_unknown_method_and_inverted_ranges():
    client = TestClient(app)
    invoice = create_invoice(client, "Acme Corp")
    pay(client, invoice["id"], "100.00", "2030-01-10", "check")

    resp = client.get("/api/payments", params={"method": "barter"})
    assert resp.status_code == 422

    resp = client.get("/api/payments", params={"min_amount": "200", "max_amount": "100"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"

    resp = client.get("/api/payments", params={"from_date": "2030-02-01", "to_date": "2030-01-01"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"

    resp = client.get("/api/payments", params={"method": "check", "min_amount": "100", "max_amount": "100"})
    assert [Decimal(p["amount"]) for p in resp.json()] == [Decimal("100.00")]
