"""
Sales report tests.

Verifies:
- Summary totals, unit quantities and daily rows over an inclusive date range
- Cash vs Bank/UPI received is dated by the payment, not the bill
- Discarded bills are left out; balances come from the customers
- Customer ledger entries (sale, payment, debt mark, discard) and scoping
"""

from datetime import datetime

import pytest

from icestock.extensions import db
from icestock.models import Order
from icestock.time_utils import to_utc_z


def make_bill(owner, customer, code, created_at, total, quantities=None, history=(), **extra):
    history = [{"action": "Created", "at": to_utc_z(created_at)}] + list(history)
    order = Order(
        user_id=owner.id,
        order_code=code,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else "Walk-in",
        items=[],
        quantity_summary=quantities,
        total=total,
        settlement_amount=sum(e.get("amountPaid", 0) for e in history),
        settlement_history=history,
        created_at=created_at,
        **extra,
    )
    db.session.add(order)
    db.session.commit()
    return order


def settled(at: str, method: str, amount: float) -> dict:
    return {"action": "Settled", "at": at, "method": method, "amountPaid": amount}


@pytest.fixture
def march(db_session, owner, other_owner, customer):
    """
    Bills for one customer around 1-3 March:

    A  1 Mar 09:00  100, paid Cash on 1 Mar
    B  2 Mar 23:30  200, marked Debt on 3 Mar, part-paid Bank/UPI on 4 Mar
    C  3 Mar 08:00  300, discarded
    D 27 Feb        50, paid Cash on 2 Mar
    """
    customer.debit = 500
    customer.credit = 50
    db_session.commit()

    make_bill(owner, customer, "A", datetime(2026, 3, 1, 9, 0), 100, {"piece": 10, "box": 1},
              [settled("2026-03-01T10:00:00Z", "Cash", 100)])
    make_bill(owner, customer, "B", datetime(2026, 3, 2, 23, 30), 200, {"piece": 5},
              [settled("2026-03-03T07:00:00Z", "Debt", 0), settled("2026-03-04T12:00:00Z", "Bank/UPI", 80)])
    make_bill(owner, customer, "C", datetime(2026, 3, 3, 8, 0), 300, {"piece": 30},
              [{"action": "Discarded", "at": "2026-03-03T09:00:00Z", "amountPaid": 0}],
              discarded_at=datetime(2026, 3, 3, 9, 0))
    make_bill(owner, customer, "D", datetime(2026, 2, 27, 12, 0), 50, {"kg": 2},
              [settled("2026-03-02T11:00:00Z", "Cash", 50)])
    make_bill(other_owner, None, "ELSEWHERE", datetime(2026, 3, 2, 12, 0), 999, {"piece": 99},
              [settled("2026-03-02T13:00:00Z", "Cash", 999)])
    return customer


# =============================================================================
# SALES SUMMARY
# =============================================================================


class TestSalesSummary:

    def test_range_totals_and_daily_rows(self, client, db_session, owner, march):
        resp = client.get(f"/api/sales/summary?userId={owner.id}&from=2026-03-01&to=2026-03-03")

        assert resp.status_code == 200
        report = resp.json
        assert report["totalOrders"] == 2
        assert report["totalSales"] == 300
        assert report["quantities"]["piece"] == 15
        assert report["quantities"]["box"] == 1
        assert report["quantities"]["kg"] == 0
        assert report["paymentBreakdown"]["cash"] == 150
        assert report["paymentBreakdown"]["bank"] == 0
        assert report["from"] == "2026-03-01T00:00:00Z"
        assert report["to"] == "2026-03-03T00:00:00Z"

        days = {row["date"]: row for row in report["daily"]}
        assert sorted(days) == ["2026-03-01", "2026-03-02"]
        assert days["2026-03-01"]["totalSales"] == 100
        assert days["2026-03-01"]["cashReceived"] == 100
        assert days["2026-03-02"]["totalOrders"] == 1
        assert days["2026-03-02"]["cashReceived"] == 50

    def test_to_date_covers_the_whole_day(self, client, db_session, owner, march):
        resp = client.get(f"/api/sales/summary?userId={owner.id}&from=2026-03-02&to=2026-03-02")

        assert resp.json["totalOrders"] == 1
        assert resp.json["totalSales"] == 200

    def test_balances_are_not_date_limited(self, client, db_session, owner, march):
        report = client.get(f"/api/sales/summary?userId={owner.id}&from=2026-01-01&to=2026-01-02").json

        assert report["totalOrders"] == 0
        assert report["daily"] == []
        assert report["overallDebit"] == 500
        assert report["overallCredit"] == 50
        assert report["netReceivable"] == 450
        assert report["paymentBreakdown"]["outstandingDebt"] == 450

    def test_without_range_counts_everything(self, client, db_session, owner, march):
        report = client.get(f"/api/sales/summary?userId={owner.id}").json

        assert report["totalOrders"] == 3
        assert report["totalSales"] == 350
        assert report["paymentBreakdown"] == {"cash": 150, "bank": 80, "outstandingDebt": 450}
        assert report["from"] is None and report["to"] is None

    def test_settlement_through_the_api_shows_up(self, client, db_session, owner, customer, product):
        resp = client.post("/api/orders", json={
            "userId": owner.id, "orderId": "ORD-9", "serialNumber": "9",
            "customerId": customer.id, "customerName": customer.name,
            "customerAddress": customer.shop_address, "customerContact": customer.contacts[0],
            "items": [{"productId": product.id, "quantity": 2, "unit": "piece"}],
            "quantitySummary": {"piece": 2}, "total": 60,
        })
        client.patch("/api/orders", json={"orderId": resp.json["order"]["id"], "userId": owner.id,
                                           "action": "settle", "method": "Bank/UPI", "amount": 60})

        report = client.get(f"/api/sales/summary?userId={owner.id}").json
        assert report["totalSales"] == 60
        assert report["quantities"]["piece"] == 2
        assert report["paymentBreakdown"]["bank"] == 60
        assert report["paymentBreakdown"]["outstandingDebt"] == 0

    @pytest.mark.parametrize("query", [
        "",
        "userId=abc",
        "userId={uid}&from=yesterday",
        "userId={uid}&from=2026-03-05&to=2026-03-01",
    ])
    def test_validation(self, client, db_session, owner, query):
        resp = client.get("/api/sales/summary?" + query.format(uid=owner.id))
        assert resp.status_code == 400


# =============================================================================
# CUSTOMER LEDGER
# =============================================================================


class TestCustomerLedger:

    def test_entries_in_time_order(self, client, db_session, owner, march):
        resp = client.get(f"/api/sales/customer-ledger?userId={owner.id}&customerId={march.id}"
                          "&from=2026-03-01&to=2026-03-03")

        assert resp.status_code == 200
        ledger = resp.json["ledger"]
        assert [(e["orderCode"], e["type"]) for e in ledger] == [
            ("A", "Sale"),
            ("A", "Payment"),
            ("D", "Payment"),
            ("B", "Sale"),
            ("B", "Adjustment"),
            ("C", "Sale"),
            ("C", "Adjustment"),
        ]
        assert ledger[0]["debit"] == 100
        assert ledger[1]["credit"] == 100
        assert ledger[1]["method"] == "Cash"
        assert ledger[4]["method"] == "Debt"
        assert ledger[4]["note"] == "Marked as Debt"
        assert ledger[4]["debit"] == ledger[4]["credit"] == 0
        assert ledger[6]["credit"] == 300
        assert ledger[6]["note"] == "Bill discarded (Order #C)"

    def test_totals_are_current_balances(self, client, db_session, owner, march):
        report = client.get(f"/api/sales/customer-ledger?userId={owner.id}&customerId={march.id}").json

        assert report["customer"]["id"] == march.id
        assert report["totals"] == {"debit": 500, "credit": 50, "netBalance": 450}
        assert len(report["ledger"]) == 9

    def test_managers_are_refused(self, client, db_session, owner, manager, march):
        resp = client.get(f"/api/sales/customer-ledger?userId={owner.id}&customerId={march.id}"
                          f"&managerId={manager.id}")
        assert resp.status_code == 403

    def test_customer_of_another_shop(self, client, db_session, other_owner, march):
        resp = client.get(f"/api/sales/customer-ledger?userId={other_owner.id}&customerId={march.id}")
        assert resp.status_code == 404

    def test_requires_user_and_customer(self, client, db_session, owner):
        assert client.get(f"/api/sales/customer-ledger?userId={owner.id}").status_code == 400
        assert client.get("/api/sales/customer-ledger?customerId=1").status_code == 400
