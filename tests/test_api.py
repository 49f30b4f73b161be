"""HTTP surface: request marshalling and error → status mapping."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ferramentas.errors import (
    CommitError,
    InsufficientStockError,
    OrderNotFoundError,
    OrderNotPendingError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
)
from ferramentas.main import create_app, status_code_for

HAMMER = {
    "name": "Martelo",
    "description": "Martelo de unha",
    "category": "manual",
    "material": "aço",
    "brand": "Tramontina",
    "dimensions": "30x10x3 cm",
    "price": 10.0,
    "stock": 5,
}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


class TestEndToEnd:
    def test_account_product_order_bill(self, client) -> None:
        resp = client.post(
            "/commands/clients",
            json={"name": "Ana", "email": "ana@x.com", "secret": "senha789"},
        )
        assert resp.status_code == 201
        assert resp.json() == {"client_id": 1}

        resp = client.post("/commands/login", json={"email": "ana@x.com", "secret": "senha789"})
        assert resp.json() == {"client_id": 1}

        resp = client.post("/commands/products", json=HAMMER)
        assert resp.status_code == 201
        assert resp.json() == {"product_id": 1}

        resp = client.post(
            "/commands/orders",
            json={"client_id": 1, "items": [{"product_id": 1, "quantity": 2}]},
        )
        assert resp.status_code == 201
        order_id = resp.json()["order_id"]

        assert client.get("/queries/products/1").json()["stock"] == 3

        resp = client.post(f"/commands/orders/{order_id}/bill")
        assert resp.json() == {"order_id": order_id, "status": "billed", "total": 20.0}

        order = client.get(f"/queries/orders/{order_id}").json()
        assert order["status"] == "billed"
        assert order["total"] == 20.0

        events = client.get("/queries/events").json()
        assert [e["event_type"] for e in events] == [
            "account_created",
            "login",
            "order_created",
            "order_billed",
        ]
        assert client.get("/queries/events", params={"event_type": "order_billed"}).json()[0][
            "total"
        ] == 20.0

    def test_add_items_then_update_product(self, client) -> None:
        client.post("/commands/clients", json={"name": "Ana", "email": "a@x.com", "secret": "s"})
        client.post("/commands/products", json=HAMMER)
        order_id = client.post(
            "/commands/orders",
            json={"client_id": 1, "items": [{"product_id": 1, "quantity": 1, "unit_price": 10.0}]},
        ).json()["order_id"]

        resp = client.post(
            f"/commands/orders/{order_id}/items",
            json={"items": [{"product_id": 1, "quantity": 1}]},
        )
        assert resp.status_code == 200
        assert resp.json()["total"] == 20.0

        resp = client.put("/commands/products/1", json={**HAMMER, "price": 11.0, "stock": 9})
        assert resp.json() == {"product_id": 1}
        [product] = client.get("/queries/products").json()
        assert product["price"] == 11.0
        assert product["stock"] == 9


class TestErrors:
    def test_insufficient_stock_is_conflict(self, client) -> None:
        client.post("/commands/clients", json={"name": "Ana", "email": "a@x.com", "secret": "s"})
        client.post("/commands/products", json={**HAMMER, "stock": 3})

        resp = client.post(
            "/commands/orders",
            json={"client_id": 1, "items": [{"product_id": 1, "quantity": 10}]},
        )

        assert resp.status_code == 409
        assert "requested=10, available=3" in resp.json()["detail"]
        assert client.get("/queries/products/1").json()["stock"] == 3

    def test_invalid_credentials(self, client) -> None:
        resp = client.post("/commands/login", json={"email": "x@x.com", "secret": "nope"})
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Invalid credentials"}

    def test_empty_items_rejected(self, client) -> None:
        resp = client.post("/commands/orders", json={"client_id": 1, "items": []})
        assert resp.status_code == 400

    def test_bill_missing_order(self, client) -> None:
        assert client.post("/commands/orders/5/bill").status_code == 404

    def test_update_missing_product(self, client) -> None:
        assert client.put("/commands/products/5", json=HAMMER).status_code == 404

    def test_unknown_product_query(self, client) -> None:
        assert client.get("/queries/products/5").status_code == 404
        assert client.get("/queries/orders/5").status_code == 404

    def test_malformed_body(self, client) -> None:
        resp = client.post("/commands/orders", json={"client_id": "abc", "items": []})
        assert resp.status_code == 422

    def test_health(self, client) -> None:
        assert client.get("/health").json()["status"] == "ok"


class TestStatusCodes:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (ValidationError("bad"), 400),
            (OrderNotFoundError(1), 404),
            (OrderNotPendingError(1, "billed"), 409),
            (InsufficientStockError(1, 0, 1), 409),
            (StoreUnavailableError("down"), 503),
            (CommitError("commit"), 500),
            (StoreError("boom"), 500),
        ],
    )
    def test_mapping(self, error, expected) -> None:
        assert status_code_for(error) == expected
