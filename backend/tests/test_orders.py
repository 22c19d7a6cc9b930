"""
Order billing and settlement tests.

Verifies:
- Creating an order decrements stock and raises customer debit / sales
- Discard reverses create exactly
- Settle (Cash / Bank/UPI / Debt) and settle-debt bookkeeping
- Payment surplus becomes customer credit
- Tenant scoping and action validation
"""

import pytest


def order_body(owner, customer, product, quantity=5, total=150, **extra):
    body = {
        "userId": owner.id,
        "orderId": "ORD-1001",
        "serialNumber": "1",
        "customerId": customer.id,
        "customerName": customer.name,
        "customerAddress": customer.shop_address,
        "customerContact": customer.contacts[0],
        "items": [{"productId": product.id, "productName": product.name, "quantity": quantity,
                   "unit": "piece", "price": 30, "total": total}],
        "subtotal": total,
        "total": total,
    }
    body.update(extra)
    return body


@pytest.fixture
def order_id(client, db_session, owner, customer, product):
    resp = client.post("/api/orders", json=order_body(owner, customer, product))
    assert resp.status_code == 201
    return resp.json["order"]["id"]


def _patch(client, owner, order_id, action, **extra):
    return client.patch("/api/orders", json={"orderId": order_id, "userId": owner.id, "action": action, **extra})


class TestCreate:

    def test_create_updates_stock_and_ledger(self, client, db_session, owner, customer, product):
        resp = client.post("/api/orders", json=order_body(owner, customer, product))

        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["status"] == "Unsettled"
        assert order["deliveryStatus"] == "Pending"
        assert order["orderId"] == "ORD-1001"
        assert order["customerLat"] == customer.latitude
        assert order["settlementHistory"][0]["action"] == "Created"

        db_session.refresh(product)
        db_session.refresh(customer)
        assert product.quantity == 45
        assert customer.debit == 150
        assert customer.total_sales == 150

    def test_free_items_also_leave_stock(self, client, db_session, owner, customer, product):
        body = order_body(owner, customer, product,
                          freeItems=[{"productId": product.id, "productName": product.name, "quantity": 2}])
        client.post("/api/orders", json=body)
        db_session.refresh(product)
        assert product.quantity == 43

    def test_insufficient_stock(self, client, db_session, owner, customer, product):
        resp = client.post("/api/orders", json=order_body(owner, customer, product, quantity=500))

        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient stock for Vanilla Cone"
        db_session.refresh(product)
        db_session.refresh(customer)
        assert product.quantity == 50
        assert customer.debit == 0

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf"])
    def test_non_finite_total_is_rejected(self, client, db_session, owner, customer, product, value):
        resp = client.post("/api/orders", json=order_body(owner, customer, product, total=value))

        assert resp.status_code == 400
        db_session.refresh(product)
        db_session.refresh(customer)
        assert product.quantity == 50
        assert customer.debit == 0

    @pytest.mark.parametrize("value", ["NaN", "Infinity"])
    def test_non_finite_item_quantity_is_rejected(self, client, db_session, owner, customer, product, value):
        resp = client.post("/api/orders", json=order_body(owner, customer, product, quantity=value))

        assert resp.status_code == 400
        assert "quantity" in resp.json["error"]
        db_session.refresh(product)
        assert product.quantity == 50

    def test_requires_items(self, client, db_session, owner, customer, product):
        resp = client.post("/api/orders", json=order_body(owner, customer, product, items=[]))
        assert resp.status_code == 400

    def test_customer_of_other_shop(self, client, db_session, other_owner, customer, product):
        resp = client.post("/api/orders", json=order_body(other_owner, customer, product))
        assert resp.status_code == 404

    def test_list_filters_by_status(self, client, db_session, owner, order_id):
        assert len(client.get(f"/api/orders?userId={owner.id}").json) == 1
        assert len(client.get(f"/api/orders?userId={owner.id}&status=settled").json) == 0


class TestSettlement:

    def test_discard_reverses_create(self, client, db_session, owner, customer, product, order_id):
        resp = _patch(client, owner, order_id, "discard")

        assert resp.status_code == 200
        assert resp.json["order"]["settlementMethod"] == "Discarded"
        db_session.refresh(product)
        db_session.refresh(customer)
        assert product.quantity == 50
        assert customer.debit == 0
        assert customer.total_sales == 0

    def test_discard_only_unsettled(self, client, db_session, owner, order_id):
        _patch(client, owner, order_id, "settle", method="Cash", amount=150)
        resp = _patch(client, owner, order_id, "discard")
        assert resp.status_code == 400

    def test_full_cash_settlement(self, client, db_session, owner, customer, order_id):
        resp = _patch(client, owner, order_id, "settle", method="Cash", amount=150)

        order = resp.json["order"]
        assert order["status"] == "settled"
        assert order["settlementMethod"] == "Cash"
        assert order["settlementAmount"] == 150
        db_session.refresh(customer)
        assert customer.debit == 0

    def test_partial_payment_becomes_debt_then_settles(self, client, db_session, owner, customer, order_id):
        resp = _patch(client, owner, order_id, "settle", method="Cash", amount=100)
        assert resp.json["order"]["settlementMethod"] == "Debt"
        db_session.refresh(customer)
        assert customer.debit == 50

        resp = _patch(client, owner, order_id, "settleDebt", method="Bank/UPI", amount=50)
        assert resp.json["order"]["settlementMethod"] == "Bank/UPI"
        assert resp.json["order"]["settlementAmount"] == 150
        db_session.refresh(customer)
        assert customer.debit == 0

    def test_overpayment_goes_to_credit(self, client, db_session, owner, customer, order_id):
        _patch(client, owner, order_id, "settle", method="Cash", amount=200)
        db_session.refresh(customer)
        assert customer.debit == 0
        assert customer.credit == 50

    def test_mark_as_debt(self, client, db_session, owner, customer, order_id):
        resp = _patch(client, owner, order_id, "settle", method="Debt")
        assert resp.json["order"]["settlementMethod"] == "Debt"
        assert resp.json["order"]["settlementAmount"] == 0
        db_session.refresh(customer)
        assert customer.debit == 150

    def test_settle_debt_requires_debt_order(self, client, db_session, owner, order_id):
        resp = _patch(client, owner, order_id, "settleDebt", method="Cash", amount=10)
        assert resp.status_code == 400

    def test_invalid_method_and_action(self, client, db_session, owner, order_id):
        assert _patch(client, owner, order_id, "settle", method="Cheque", amount=10).status_code == 400
        resp = _patch(client, owner, order_id, "refund")
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid action."

    def test_other_shop_cannot_touch_order(self, client, db_session, other_owner, order_id):
        resp = _patch(client, other_owner, order_id, "discard")
        assert resp.status_code == 404
        assert resp.json["error"] == "Order not found."
