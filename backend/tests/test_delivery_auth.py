"""
Delivery partner login and session guard tests.

Verifies:
- Two-step OTP login for approved partners only
- Session token authorizes exactly the partner that logged in
- Access is revoked as soon as the partner leaves "approved"
- Guard responses for missing / unknown tokens
- A second login replaces the previous session
"""

from icestock.models import DeliveryPartner, SecurityEvent
from icestock.models.delivery import PARTNER_PENDING, PARTNER_REJECTED

from conftest import auth_headers


def _login_otp(client, email="ravi@riders.test", password="secret1"):
    return client.post("/api/delivery/login-otp", json={"email": email, "password": password})


def _wrong(code):
    return "000000" if code != "000000" else "111111"


def _full_login(client, db_session, partner):
    resp = _login_otp(client, email=partner.email)
    assert resp.status_code == 200
    db_session.refresh(partner)
    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner.id, "otp": partner.otp})
    assert resp.status_code == 200
    return resp.json["token"]


def test_register_approve_login_then_reject_scenario(client, db_session, owner, outbox):
    resp = client.post("/api/delivery/register", json={
        "name": "Arun", "email": "a@x.com", "password": "secret1", "createdByUser": owner.id,
    })
    partner_id = resp.json["partnerId"]
    partner = db_session.get(DeliveryPartner, partner_id)
    assert partner.status == PARTNER_PENDING

    resp = client.patch("/api/delivery/approve", json={"partnerId": partner_id, "userId": owner.id})
    assert resp.json["partner"]["status"] == "approved"

    resp = _login_otp(client, email="a@x.com")
    assert resp.status_code == 200
    assert resp.json["partnerId"] == partner_id
    db_session.refresh(partner)
    code = partner.otp
    assert code in outbox[-1]["text"]

    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner_id, "otp": _wrong(code)})
    assert resp.status_code == 400
    assert resp.json["error"] == "Invalid OTP"

    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner_id, "otp": code})
    assert resp.status_code == 200
    token = resp.json["token"]
    assert token

    resp = client.get("/api/delivery/profile", headers=auth_headers(token))
    assert resp.status_code == 200
    assert resp.json["partner"]["id"] == partner_id

    client.patch("/api/delivery/reject", json={"partnerId": partner_id, "userId": owner.id})

    resp = client.get("/api/delivery/profile", headers=auth_headers(token))
    assert resp.status_code == 403
    assert resp.json["error"] == "Access revoked. Please login again."
    assert db_session.query(SecurityEvent).filter_by(event_type="REVOKED_SESSION_USED").count() == 1


def test_token_authorizes_only_its_partner(client, db_session, owner, make_partner):
    first = make_partner(owner=owner, email="one@riders.test")
    second = make_partner(owner=owner, email="two@riders.test")

    token_one = _full_login(client, db_session, first)
    token_two = _full_login(client, db_session, second)

    assert client.get("/api/delivery/profile", headers=auth_headers(token_one)).json["partner"]["id"] == first.id
    assert client.get("/api/delivery/profile", headers=auth_headers(token_two)).json["partner"]["id"] == second.id


def test_token_is_stored_hashed(client, db_session, partner):
    token = _full_login(client, db_session, partner)
    db_session.refresh(partner)
    assert partner.session_token_hash
    assert partner.session_token_hash != token


def test_new_login_replaces_old_session(client, db_session, partner):
    old = _full_login(client, db_session, partner)
    new = _full_login(client, db_session, partner)

    assert client.get("/api/delivery/profile", headers=auth_headers(old)).status_code == 401
    assert client.get("/api/delivery/profile", headers=auth_headers(new)).status_code == 200


def test_missing_and_unknown_tokens(client, db_session, partner):
    resp = client.get("/api/delivery/profile")
    assert resp.status_code == 401
    assert resp.json["error"] == "Authorization token missing"

    resp = client.get("/api/delivery/profile", headers={"Authorization": "Token abc"})
    assert resp.status_code == 401

    resp = client.get("/api/delivery/profile", headers=auth_headers("not-a-real-token"))
    assert resp.status_code == 401
    assert resp.json["error"] == "Session expired. Please login again."


def test_login_otp_for_unknown_email(client, db_session):
    resp = _login_otp(client, email="nobody@x.com")
    assert resp.status_code == 404


def test_login_otp_requires_approval(client, db_session, owner, make_partner):
    make_partner(owner=owner, status=PARTNER_PENDING)
    resp = _login_otp(client)
    assert resp.status_code == 403
    assert resp.json["error"] == "Partner not approved (pending)"


def test_login_otp_wrong_password_is_logged(client, db_session, partner):
    resp = _login_otp(client, password="wrong-password")
    assert resp.status_code == 401
    assert db_session.query(SecurityEvent).filter_by(event_type="DELIVERY_LOGIN_FAILED").count() == 1


def test_login_picks_matching_shop_by_password(client, db_session, owner, other_owner, make_partner):
    make_partner(owner=owner, password="first-pass")
    second = make_partner(owner=other_owner, password="second-pass")

    resp = _login_otp(client, password="second-pass")
    assert resp.status_code == 200
    assert resp.json["partnerId"] == second.id


def test_verify_blocked_when_rejected_between_steps(client, db_session, partner):
    _login_otp(client)
    db_session.refresh(partner)
    code = partner.otp
    partner.status = PARTNER_REJECTED
    db_session.commit()

    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner.id, "otp": code})
    assert resp.status_code == 403


def test_verify_by_email(client, db_session, partner):
    _login_otp(client)
    db_session.refresh(partner)

    resp = client.post("/api/delivery/verify-otp", json={"email": partner.email, "otp": partner.otp})
    assert resp.status_code == 200
    assert resp.json["partnerId"] == partner.id


def test_verify_requires_code(client, db_session, partner):
    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner.id})
    assert resp.status_code == 400


def test_latest_code_wins(client, db_session, partner):
    _login_otp(client)
    db_session.refresh(partner)
    first = partner.otp
    _login_otp(client)
    db_session.refresh(partner)
    second = partner.otp

    if first != second:
        resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner.id, "otp": first})
        assert resp.status_code == 400
    resp = client.post("/api/delivery/verify-otp", json={"partnerId": partner.id, "otp": second})
    assert resp.status_code == 200
