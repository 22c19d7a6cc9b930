"""
Partner-side delivery app tests (behind the session guard).

Verifies:
- Profile edit, OTP password change, location reporting
- Delivery queue scoping and order claiming
- Forward-only status transitions with write-once timestamps
- Delivered-order grouping
"""

from datetime import timedelta

import pytest

from icestock.extensions import db
from icestock.models import Order
from icestock.models.orders import DELIVERY_DELIVERED
from icestock.services.auth_service import verify_password
from icestock.services import session_service
from icestock.time_utils import utcnow

from conftest import auth_headers


def make_order(owner, customer=None, code="ORD-1", **extra):
    order = Order(
        user_id=owner.id,
        order_code=code,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else "Walk-in",
        items=[],
        total=100,
        **extra,
    )
    db.session.add(order)
    db.session.commit()
    return order


# =============================================================================
# PROFILE / LOCATION
# =============================================================================


class TestProfile:

    def test_update_profile(self, client, db_session, partner, partner_headers):
        resp = client.patch("/api/delivery/profile/update", json={"name": "Ravi Kumar", "phone": ""},
                            headers=partner_headers)

        assert resp.status_code == 200
        assert resp.json["partner"]["name"] == "Ravi Kumar"
        # Blank values leave the field alone
        assert resp.json["partner"]["phone"] == "9000000001"

    def test_password_change_with_otp(self, client, db_session, partner, partner_headers, outbox):
        resp = client.post("/api/delivery/profile/request-password-otp", headers=partner_headers)
        assert resp.status_code == 200
        assert outbox[-1]["to"] == partner.email
        db_session.refresh(partner)

        resp = client.patch("/api/delivery/profile/change-password",
                            json={"otp": partner.otp, "newPassword": "newsecret"}, headers=partner_headers)
        assert resp.status_code == 200
        db_session.refresh(partner)
        assert verify_password("newsecret", partner.password_hash)
        assert partner.otp is None

    def test_password_change_rejects_short_password(self, client, db_session, partner, partner_headers):
        client.post("/api/delivery/profile/request-password-otp", headers=partner_headers)
        db_session.refresh(partner)
        resp = client.patch("/api/delivery/profile/change-password",
                            json={"otp": partner.otp, "newPassword": "abc"}, headers=partner_headers)
        assert resp.status_code == 400

    def test_update_location(self, client, db_session, partner, partner_headers):
        resp = client.post("/api/delivery/update-location", json={"latitude": 12.5, "longitude": 77.25},
                           headers=partner_headers)
        assert resp.status_code == 200
        db_session.refresh(partner)
        assert partner.last_latitude == 12.5
        assert partner.location_updated_at is not None

    @pytest.mark.parametrize("body", [{}, {"latitude": 100, "longitude": 0}, {"latitude": "x", "longitude": 1}])
    def test_update_location_validation(self, client, db_session, partner_headers, body):
        resp = client.post("/api/delivery/update-location", json=body, headers=partner_headers)
        assert resp.status_code == 400


# =============================================================================
# DELIVERY QUEUE / STATUS
# =============================================================================


class TestDeliveryOrders:

    def test_queue_is_scoped_to_shop_and_partner(self, client, db_session, owner, other_owner,
                                                 partner, partner_headers, make_partner, customer):
        mine = make_order(owner, customer, code="MINE")
        make_order(other_owner, code="OTHER-SHOP")
        rival = make_partner(owner=owner, email="rival@riders.test")
        make_order(owner, code="TAKEN", delivery_partner_id=rival.id)

        resp = client.get("/api/delivery/orders", headers=partner_headers)

        assert resp.status_code == 200
        assert [o["orderId"] for o in resp.json] == ["MINE"]
        assert resp.json[0]["id"] == mine.id
        assert resp.json[0]["customerLat"] == customer.latitude
        assert resp.json[0]["shopName"] == owner.shop_name

    def test_claim_and_advance(self, client, db_session, partner, partner_headers, owner):
        order = make_order(owner)

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way"}, headers=partner_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["deliveryPartnerId"] == partner.id
        on_the_way_at = resp.json["order"]["deliveryOnTheWayAt"]
        assert on_the_way_at

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "Delivered", "note": "Left with owner"},
                            headers=partner_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["deliveryStatus"] == DELIVERY_DELIVERED
        assert resp.json["order"]["deliveryOnTheWayAt"] == on_the_way_at
        assert resp.json["order"]["deliveryNotes"] == "Left with owner"

    def test_no_skipping_or_going_back(self, client, db_session, partner_headers, owner):
        order = make_order(owner)

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "Delivered"}, headers=partner_headers)
        assert resp.status_code == 409

        client.patch("/api/delivery/update-order-status",
                     json={"orderId": order.id, "status": "On the Way"}, headers=partner_headers)
        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "Pending"}, headers=partner_headers)
        assert resp.status_code == 409

    def test_cannot_touch_other_partners_order(self, client, db_session, owner, partner_headers, make_partner):
        rival = make_partner(owner=owner, email="rival@riders.test")
        order = make_order(owner, delivery_partner_id=rival.id)

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way"}, headers=partner_headers)
        assert resp.status_code == 403

    def test_cannot_touch_other_shops_order(self, client, db_session, other_owner, partner_headers):
        order = make_order(other_owner)
        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way"}, headers=partner_headers)
        assert resp.status_code == 403

    def test_unowned_partner_queue_needs_shop(self, client, db_session, owner, other_owner, make_partner):
        loner = make_partner(owner=None, email="loner@riders.test")
        headers = auth_headers(session_service.mint_session(loner))
        db_session.commit()
        make_order(owner, code="OURS")
        make_order(other_owner, code="THEIRS")

        assert client.get("/api/delivery/orders", headers=headers).status_code == 400

        resp = client.get(f"/api/delivery/orders?userId={owner.id}", headers=headers)
        assert resp.status_code == 200
        assert [o["orderId"] for o in resp.json] == ["OURS"]

    def test_unowned_partner_cannot_claim_without_shop(self, client, db_session, owner, other_owner,
                                                       make_partner):
        loner = make_partner(owner=None, email="loner@riders.test")
        headers = auth_headers(session_service.mint_session(loner))
        db_session.commit()
        order = make_order(other_owner)

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way"}, headers=headers)
        assert resp.status_code == 400

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way", "userId": owner.id},
                            headers=headers)
        assert resp.status_code == 403

        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "On the Way", "userId": other_owner.id},
                            headers=headers)
        assert resp.status_code == 200
        assert resp.json["order"]["deliveryPartnerId"] == loner.id

    def test_invalid_status_value(self, client, db_session, owner, partner_headers):
        order = make_order(owner)
        resp = client.patch("/api/delivery/update-order-status",
                            json={"orderId": order.id, "status": "Lost"}, headers=partner_headers)
        assert resp.status_code == 400

    def test_delivered_orders_grouping(self, client, db_session, owner, partner, partner_headers):
        now = utcnow()
        make_order(owner, code="TODAY", delivery_partner_id=partner.id,
                   delivery_status=DELIVERY_DELIVERED, delivery_completed_at=now)
        make_order(owner, code="OLD", delivery_partner_id=partner.id,
                   delivery_status=DELIVERY_DELIVERED, delivery_completed_at=now - timedelta(days=30))

        resp = client.get("/api/delivery/delivered-orders", headers=partner_headers)

        assert resp.status_code == 200
        assert resp.json["total"] == 2
        assert [o["orderId"] for o in resp.json["groups"]["today"]] == ["TODAY"]
        assert [o["orderId"] for o in resp.json["groups"]["older"]] == ["OLD"]
