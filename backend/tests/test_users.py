from conftest import API, auth_headers
from models.audit_log import AuditLog
from models.users import User


def test_list_users_defaults_to_active(client, admin_headers, staff, make_user):
    make_user("old@inventory.com", status="inactive")

    resp = client.get(f"{API}/auth/users", headers=admin_headers)
    assert resp.status_code == 200
    emails = {u["email"] for u in resp.json()["data"]}
    assert emails == {"admin@inventory.com", "staff@inventory.com"}

    resp = client.get(f"{API}/auth/users", params={"status": "all"}, headers=admin_headers)
    assert len(resp.json()["data"]) == 3

    resp = client.get(f"{API}/auth/users", params={"status": "inactive"}, headers=admin_headers)
    assert [u["email"] for u in resp.json()["data"]] == ["old@inventory.com"]


def test_admin_creates_admin(client, admin_headers):
    payload = {"name": "Second Admin", "email": "second@inventory.com", "password": "password1", "role": "admin"}
    resp = client.post(f"{API}/auth/users", json=payload, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["role"] == "admin"


def test_update_user_partial(client, admin_headers, staff, db):
    resp = client.put(f"{API}/auth/users/{staff.id}", json={"name": "Renamed"}, headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["name"] == "Renamed"
    assert data["email"] == staff.email

    audit = db.query(AuditLog).filter(AuditLog.table_name == "users", AuditLog.action == "UPDATE").one()
    assert audit.record_id == staff.id
    assert audit.old_values["name"] == "Staff Member"
    assert audit.new_values["name"] == "Renamed"
    assert "password_hash" not in audit.new_values


def test_update_user_with_empty_body(client, admin_headers, staff):
    resp = client.put(f"{API}/auth/users/{staff.id}", json={}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "NO_UPDATES"


def test_update_user_email_taken(client, admin_headers, staff, admin):
    resp = client.put(f"{API}/auth/users/{staff.id}", json={"email": admin.email}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "EMAIL_EXISTS"


def test_update_unknown_user(client, admin_headers):
    resp = client.put(f"{API}/auth/users/9999", json={"name": "Ghost"}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "USER_NOT_FOUND"


def test_cannot_deactivate_last_admin(client, admin, admin_headers):
    resp = client.patch(f"{API}/auth/users/{admin.id}/status", json={"status": "inactive"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "LAST_ADMIN"


def test_cannot_demote_last_admin(client, admin, admin_headers):
    resp = client.put(f"{API}/auth/users/{admin.id}", json={"role": "user"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "LAST_ADMIN"


def test_cannot_delete_last_admin(client, admin, admin_headers, db):
    resp = client.delete(f"{API}/auth/users/{admin.id}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "LAST_ADMIN"

    db.expire_all()
    assert db.get(User, admin.id).status == "active"


def test_admin_cannot_deactivate_self(client, admin, admin_headers, make_user):
    make_user("other-admin@inventory.com", role="admin")
    resp = client.patch(f"{API}/auth/users/{admin.id}/status", json={"status": "inactive"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CANNOT_DEACTIVATE_SELF"


def test_admin_can_deactivate_another_admin(client, admin_headers, make_user):
    other = make_user("other-admin@inventory.com", role="admin")
    resp = client.patch(f"{API}/auth/users/{other.id}/status", json={"status": "inactive"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "inactive"


def test_delete_user_is_soft(client, admin_headers, staff, db):
    resp = client.delete(f"{API}/auth/users/{staff.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "inactive"

    db.expire_all()
    assert db.get(User, staff.id) is not None
    assert db.get(User, staff.id).status == "inactive"

    # The deactivated account can no longer use its token
    resp = client.get(f"{API}/auth/me", headers=auth_headers(staff))
    assert resp.status_code == 401


def test_reactivate_user(client, admin_headers, make_user):
    user = make_user("back@inventory.com", status="inactive")
    resp = client.patch(f"{API}/auth/users/{user.id}/status", json={"status": "active"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "active"
