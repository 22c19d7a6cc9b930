"""
Product and stock tests.

Verifies:
- Product CRUD through the validation policy (camelCase in, camelCase out)
- Tenant scoping of updates and deletes
- Restock adds quantities and records history
- Empty stock zeroes everything and records an "Empty Stock" entry
"""

import pytest

from icestock.models import Product, RestockHistory


PRODUCT = {
    "name": "Mango Kulfi",
    "category": "Kulfi",
    "unit": "box",
    "packQuantity": 12,
    "packUnit": "piece",
    "purchasePrice": 180,
    "sellingPrice": 240,
    "mrp": 264,
    "quantity": 8,
    "minStock": 10,
}


class TestProducts:

    def test_create_and_list(self, client, db_session, owner):
        resp = client.post("/api/products", json={**PRODUCT, "userId": owner.id})

        assert resp.status_code == 201
        assert resp.json["sellingPrice"] == 240
        assert resp.json["lowStock"] is True

        listed = client.get(f"/api/products?userId={owner.id}").json
        assert [p["name"] for p in listed] == ["Mango Kulfi"]

    @pytest.mark.parametrize("patch", [
        {"unit": "crate"},
        {"quantity": -1},
        {"sellingPrice": "cheap"},
        {"sellingPrice": "NaN"},
        {"purchasePrice": "Infinity"},
        {"mrp": float("nan")},
        {"createdBy": 7},
    ])
    def test_create_validation(self, client, db_session, owner, patch):
        resp = client.post("/api/products", json={**PRODUCT, **patch, "userId": owner.id})
        assert resp.status_code == 400

    def test_requires_user(self, client, db_session):
        resp = client.post("/api/products", json=PRODUCT)
        assert resp.status_code == 400

    def test_update_is_scoped(self, client, db_session, owner, other_owner, product):
        resp = client.put("/api/products", json={"id": product.id, "userId": other_owner.id, "quantity": 1})
        assert resp.status_code == 404

        resp = client.put("/api/products", json={"id": product.id, "userId": owner.id, "sellingPrice": 35})
        assert resp.status_code == 200
        assert resp.json["sellingPrice"] == 35

    def test_delete(self, client, db_session, owner, other_owner, product):
        assert client.delete("/api/products", json={"id": product.id, "userId": other_owner.id}).status_code == 404
        assert client.delete("/api/products", json={"id": product.id, "userId": owner.id}).status_code == 200
        assert db_session.query(Product).count() == 0


class TestStock:

    def test_restock(self, client, db_session, owner, product):
        resp = client.post("/api/products/restock", json={
            "userId": owner.id, "items": [{"productId": product.id, "quantity": 25}],
        })

        assert resp.status_code == 201
        assert resp.json["items"][0]["note"] == "Restocking"
        db_session.refresh(product)
        assert product.quantity == 75

    def test_restock_rejects_foreign_product(self, client, db_session, other_owner, product):
        resp = client.post("/api/products/restock", json={
            "userId": other_owner.id, "items": [{"productId": product.id, "quantity": 5}],
        })
        assert resp.status_code == 404
        db_session.refresh(product)
        assert product.quantity == 50

    def test_restock_rejects_non_positive(self, client, db_session, owner, product):
        resp = client.post("/api/products/restock", json={
            "userId": owner.id, "items": [{"productId": product.id, "quantity": 0}],
        })
        assert resp.status_code == 400

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "1e999"])
    def test_restock_rejects_non_finite(self, client, db_session, owner, product, value):
        resp = client.post("/api/products/restock", json={
            "userId": owner.id, "items": [{"productId": product.id, "quantity": value}],
        })

        assert resp.status_code == 400
        assert resp.json["error"] == "quantity must be a finite number"
        db_session.refresh(product)
        assert product.quantity == 50
        assert db_session.query(RestockHistory).count() == 0

    def test_bad_item_rolls_back_whole_batch(self, client, db_session, owner, product):
        resp = client.post("/api/products/restock", json={
            "userId": owner.id,
            "items": [{"productId": product.id, "quantity": 5}, {"productId": product.id, "quantity": "NaN"}],
        })

        assert resp.status_code == 400
        db_session.refresh(product)
        assert product.quantity == 50

    def test_empty_stock(self, client, db_session, owner, product):
        resp = client.post("/api/products/empty", json={"userId": owner.id})

        assert resp.status_code == 200
        assert resp.json["emptied"] is True
        assert "historyError" not in resp.json
        db_session.refresh(product)
        assert product.quantity == 0

        entry = db_session.query(RestockHistory).one()
        assert entry.items[0]["note"] == "Empty Stock"
        assert entry.items[0]["quantity"] == 50

    def test_empty_stock_without_products(self, client, db_session, owner):
        resp = client.post("/api/products/empty", json={"userId": owner.id})
        assert resp.json == {"message": "No products found for user", "emptied": False}

    def test_history_listing(self, client, db_session, owner):
        resp = client.post("/api/restock-history", json={"userId": owner.id, "items": [{"name": "x", "quantity": 1}]})
        assert resp.status_code == 201
        assert len(client.get(f"/api/restock-history?userId={owner.id}").json) == 1
