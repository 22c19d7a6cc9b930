"""
Manager management tests (scoped to the owning admin).
"""

from icestock.models import Manager
from icestock.services.auth_service import verify_password


def _body(owner, **extra):
    body = {"adminId": owner.id, "name": "Mohan", "email": "mohan@polar.test",
            "contact": "9000011111", "password": "secret1"}
    body.update(extra)
    return body


def test_create_and_list(client, db_session, owner, other_owner):
    resp = client.post("/api/manager", json=_body(owner))
    assert resp.status_code == 201
    assert "password" not in resp.json and "passwordHash" not in resp.json

    assert [m["email"] for m in client.get(f"/api/manager?adminId={owner.id}").json] == ["mohan@polar.test"]
    assert client.get(f"/api/manager?adminId={other_owner.id}").json == []


def test_duplicate_email_under_same_admin(client, db_session, owner, other_owner):
    client.post("/api/manager", json=_body(owner))
    assert client.post("/api/manager", json=_body(owner)).status_code == 409
    # Another admin may employ the same person
    assert client.post("/api/manager", json=_body(other_owner)).status_code == 201


def test_update_and_delete_are_scoped(client, db_session, owner, other_owner, manager):
    resp = client.put("/api/manager", json={"id": manager.id, "adminId": other_owner.id, "name": "X"})
    assert resp.status_code == 404

    resp = client.put("/api/manager", json={"id": manager.id, "adminId": owner.id, "name": "Meena R"})
    assert resp.json["name"] == "Meena R"

    assert client.delete("/api/manager", json={"id": manager.id, "adminId": other_owner.id}).status_code == 404
    assert client.delete("/api/manager", json={"id": manager.id, "adminId": owner.id}).status_code == 200
    assert db_session.query(Manager).count() == 0


def test_password_otp_goes_to_admin(client, db_session, owner, manager, outbox):
    resp = client.post("/api/manager/request-password-otp", json={"managerId": manager.id, "adminId": owner.id})
    assert resp.status_code == 200
    assert outbox[-1]["to"] == owner.email

    db_session.refresh(manager)
    resp = client.put("/api/manager/change-password", json={
        "managerId": manager.id, "adminId": owner.id, "otp": manager.otp, "password": "changed1",
    })
    assert resp.status_code == 200
    db_session.refresh(manager)
    assert verify_password("changed1", manager.password_hash)


def test_change_password_wrong_otp(client, db_session, owner, manager):
    client.post("/api/manager/request-password-otp", json={"managerId": manager.id, "adminId": owner.id})
    db_session.refresh(manager)
    wrong = "000000" if manager.otp != "000000" else "111111"

    resp = client.put("/api/manager/change-password", json={
        "managerId": manager.id, "adminId": owner.id, "otp": wrong, "password": "changed1",
    })
    assert resp.status_code == 400
