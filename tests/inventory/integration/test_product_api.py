"""Integration tests for product and stock endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.inventory.api.routes import product_router
from storefront.inventory.ledger import StockLedger
from storefront.inventory.management import SetStock
from storefront.utils.http import register_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(product_router)
    return TestClient(app)


def _create(client, **overrides):
    body = {"name": "Linen Shirt", "price": 120.0, "images": ["https://cdn.example/1.jpg"], "category": "apparel"}
    body.update(overrides)
    return client.post("/products", json=body)


class TestProductEndpoints:
    def test_create_and_get(self, client):
        response = _create(client)
        assert response.status_code == 201
        product_id = response.json()["product_id"]

        body = client.get(f"/products/{product_id}").json()

        assert body["name"] == "Linen Shirt"
        assert body["images"] == ["https://cdn.example/1.jpg"]
        assert body["is_preorder"] is False

    def test_negative_price(self, client):
        assert _create(client, price=-5).status_code == 422

    def test_get_unknown(self, client):
        assert client.get("/products/missing").status_code == 404


class TestStockEndpoints:
    def test_set_and_read(self, client):
        product_id = _create(client).json()["product_id"]

        client.put(f"/products/{product_id}/stock", json={"size": "M", "quantity": 4})
        client.put(f"/products/{product_id}/stock", json={"quantity": 2})

        response = client.get(f"/products/{product_id}/stock")
        assert response.json() == {"product_id": product_id, "sizes": {"M": 4, "unique": 2}}

    def test_negative_quantity(self, client):
        product_id = _create(client).json()["product_id"]
        response = client.put(f"/products/{product_id}/stock", json={"size": "M", "quantity": -1})
        assert response.status_code == 422

    def test_stock_of_unknown_product(self, client):
        assert client.get("/products/missing/stock").status_code == 404


class TestSetStockCommand:
    def test_restock_overwrites(self):
        current_domain.process(SetStock(product_id="prod-1", size="M", quantity=5), asynchronous=False)
        current_domain.process(SetStock(product_id="prod-1", size="M", quantity=2), asynchronous=False)

        assert StockLedger().available("prod-1", "M") == 2

    def test_default_size(self):
        current_domain.process(SetStock(product_id="prod-1", quantity=3), asynchronous=False)
        assert StockLedger().available("prod-1") == 3

    def test_negative_quantity(self):
        with pytest.raises(ValidationError):
            SetStock(product_id="prod-1", size="M", quantity=-1)
