import pytest

from univote.encryption.password_hashing import PasswordHashingService

STRONG_PASSWORD = "Ballot-Box-2024"

SIGN_UP = {
    "username": "maya",
    "email": "maya@college.edu",
    "password": STRONG_PASSWORD,
    "department": "CS",
    "studentId": "CS-2021-001",
    "year": 3,
}


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_sign_up_and_sign_in(client):
    resp = client.post("/sign-up", json=SIGN_UP)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["roles"] == ["voter"]
    assert body["user"]["year"] == "3"
    assert "passwordHash" not in body["user"]
    assert body["token"]

    for identifier in ("maya", "MAYA@College.edu"):
        resp = client.post("/sign-in", json={"identifier": identifier, "password": STRONG_PASSWORD})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["username"] == "maya"

    me = client.get("/me", headers=_auth(body["token"])).get_json()["user"]
    assert me["email"] == "maya@college.edu"
    assert "passwordHash" not in me


@pytest.mark.parametrize("identifier,password", [
    ("maya", "Wrong-Password-1"),
    ("nobody", STRONG_PASSWORD),
])
def test_sign_in_rejects_bad_credentials(client, identifier, password):
    client.post("/sign-up", json=SIGN_UP)
    resp = client.post("/sign-in", json={"identifier": identifier, "password": password})
    assert resp.status_code == 401
    assert resp.get_json() == {"message": "Invalid credentials."}


def test_sign_in_requires_both_fields(client):
    assert client.post("/sign-in", json={"identifier": "maya"}).status_code == 400


@pytest.mark.parametrize("change", [
    {"username": "MAYA"},
    {"email": "Maya@College.edu", "username": "other"},
    {"studentId": "cs-2021-001", "username": "other", "email": "other@college.edu"},
])
def test_sign_up_duplicates_conflict(client, change):
    client.post("/sign-up", json=SIGN_UP)
    resp = client.post("/sign-up", json=dict(SIGN_UP, **change))
    assert resp.status_code == 409


@pytest.mark.parametrize("change,message", [
    ({"password": ""}, "Username, email, and password are required."),
    ({"department": ""}, "Department is required."),
    ({"studentId": None}, "Student ID is required."),
    ({"email": "not-an-email"}, "A valid email address is required."),
    ({"password": "short"}, None),
])
def test_sign_up_validation(client, change, message):
    resp = client.post("/sign-up", json=dict(SIGN_UP, **change))
    assert resp.status_code == 400
    if message:
        assert resp.get_json()["message"] == message


def test_profile_update(client, make_user):
    make_user("taken")
    user, headers = make_user()

    assert client.get("/profile", headers=headers).get_json()["profile"]["id"] == user["id"]

    resp = client.put("/profile", json={"email": "taken@college.edu"}, headers=headers)
    assert resp.status_code == 409

    resp = client.put("/profile", json={"email": "new@college.edu"}, headers=headers)
    assert resp.get_json()["message"] == "Profile updated successfully."
    assert resp.get_json()["profile"]["email"] == "new@college.edu"

    resp = client.put("/profile", json={}, headers=headers)
    assert resp.get_json()["message"] == "No changes made."


def test_password_change(client, make_user):
    user, headers = make_user()
    new_password = "Fresh-Ballot-2025"

    assert client.put("/profile", json={"newPassword": new_password}, headers=headers).status_code == 400
    resp = client.put("/profile", json={"newPassword": new_password, "currentPassword": "Wrong-Password-1"},
                      headers=headers)
    assert resp.status_code == 401

    resp = client.put("/profile", json={"newPassword": new_password, "currentPassword": STRONG_PASSWORD},
                      headers=headers)
    assert resp.status_code == 200
    assert client.post("/sign-in", json={"identifier": user["username"], "password": STRONG_PASSWORD}).status_code == 401
    assert client.post("/sign-in", json={"identifier": user["username"], "password": new_password}).status_code == 200


def test_list_users_is_admin_only(client, admin, make_user):
    _, voter = make_user()
    _, admin_headers = admin

    assert client.get("/users", headers=voter).status_code == 403
    users = client.get("/users", headers=admin_headers).get_json()["users"]
    assert {u["username"] for u in users} == {"admin", "student1"}
    assert all("passwordHash" not in u and u["banned"] is False for u in users)


def test_banned_user_is_locked_out(client, admin, make_user):
    _, admin_headers = admin
    user, headers = make_user()

    resp = client.post(f"/users/{user['id']}/toggle-ban", headers=admin_headers)
    assert resp.get_json() == {"message": "User banned.", "user": {"id": user["id"], "banned": True}}

    resp = client.post("/sign-in", json={"identifier": user["username"], "password": STRONG_PASSWORD})
    assert resp.status_code == 403
    # tokens issued before the ban stop working for actions
    resp = client.put("/profile", json={"email": "x@college.edu"}, headers=headers)
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Account is banned. Contact administration."}
    assert client.post("/votes", json={"candidateId": "any"}, headers=headers).status_code == 403

    resp = client.post(f"/users/{user['id']}/toggle-ban", headers=admin_headers)
    assert resp.get_json()["message"] == "User unbanned."
    assert client.post("/sign-in", json={"identifier": user["username"], "password": STRONG_PASSWORD}).status_code == 200


def test_inspector_ban_rules(client, make_user):
    _, inspector = make_user("inspector", roles=["voter", "inspector"])
    voter, _ = make_user()
    other_admin, _ = make_user("boss", roles=["voter", "admin"])

    assert client.post(f"/users/{voter['id']}/toggle-ban", headers=inspector).status_code == 200
    resp = client.post(f"/users/{other_admin['id']}/toggle-ban", headers=inspector)
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Inspectors cannot ban privileged users."}


def test_developer_can_ban_admin(client, admin, make_user):
    admin_user, _ = admin
    _, developer = make_user("dev", roles=["voter", "developer"])
    resp = client.post(f"/users/{admin_user['id']}/toggle-ban", headers=developer)
    assert resp.status_code == 200
    assert resp.get_json()["user"]["banned"] is True


def test_admin_cannot_ban_peer_admin(client, admin, make_user):
    _, admin_headers = admin
    peer, _ = make_user("peer", roles=["voter", "admin"])
    resp = client.post(f"/users/{peer['id']}/toggle-ban", headers=admin_headers)
    assert resp.status_code == 403


def test_ban_endpoint_errors(client, admin, make_user):
    admin_user, admin_headers = admin
    _, voter = make_user()

    resp = client.post(f"/users/{admin_user['id']}/toggle-ban", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "You cannot ban yourself."}
    assert client.post("/users/missing/toggle-ban", headers=admin_headers).status_code == 404

    resp = client.post(f"/users/{admin_user['id']}/toggle-ban", headers=voter)
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Insufficient privileges."}


def test_toggle_role_grants_and_revokes(client, admin, make_user):
    _, admin_headers = admin
    user, _ = make_user()
    url = f"/users/{user['id']}/toggle-role"

    resp = client.post(url, json={"role": "inspector"}, headers=admin_headers)
    assert resp.get_json()["user"]["roles"] == ["voter", "inspector"]
    resp = client.post(url, json={"role": "inspector"}, headers=admin_headers)
    assert resp.get_json()["user"]["roles"] == ["voter"]


def test_only_developers_grant_admin(client, admin, make_user):
    _, admin_headers = admin
    _, developer = make_user("dev", roles=["voter", "developer"])
    user, user_headers = make_user()
    url = f"/users/{user['id']}/toggle-role"

    resp = client.post(url, json={"role": "admin"}, headers=admin_headers)
    assert resp.status_code == 403
    assert resp.get_json() == {"message": "Only Developers can assign Admin role."}

    assert client.post(url, json={"role": "admin"}, headers=developer).status_code == 200
    # the promoted account's existing token picks up the new role
    assert client.post("/positions", json={"title": "President"}, headers=user_headers).status_code == 201


@pytest.mark.parametrize("body", [{}, {"role": "voter"}, {"role": "superuser"}])
def test_toggle_role_validation(client, admin, make_user, body):
    _, admin_headers = admin
    user, _ = make_user()
    assert client.post(f"/users/{user['id']}/toggle-role", json=body, headers=admin_headers).status_code == 400


def test_toggle_role_on_self_is_rejected(client, admin):
    admin_user, admin_headers = admin
    resp = client.post(f"/users/{admin_user['id']}/toggle-role", json={"role": "inspector"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "You cannot modify your own roles."}


def test_inspector_cannot_toggle_roles(client, make_user):
    _, inspector = make_user("inspector", roles=["voter", "inspector"])
    user, _ = make_user()
    resp = client.post(f"/users/{user['id']}/toggle-role", json={"role": "inspector"}, headers=inspector)
    assert resp.status_code == 403


def test_audit_log_view(client, admin, make_user):
    _, admin_headers = admin
    _, inspector = make_user("inspector", roles=["voter", "inspector"])
    _, voter = make_user()
    client.post("/positions", json={"title": "President"}, headers=admin_headers)

    assert client.get("/audit-log", headers=voter).status_code == 403
    body = client.get("/audit-log?limit=1", headers=inspector).get_json()
    assert body["intact"] is True
    assert [e["event_type"] for e in body["entries"]] == ["position_created"]


def test_me_lists_permissions(client, make_user):
    _, inspector = make_user("inspector", roles=["voter", "inspector"])
    body = client.get("/me", headers=inspector).get_json()
    assert body["permissions"] == ["ban_users", "view_audit_log"]


def test_sign_in_upgrades_outdated_hash(app, client, make_user):
    user, _ = make_user()
    accounts = app.extensions["univote"]["accounts"]
    old_hash = accounts.user_store.load()[0]["passwordHash"]

    accounts.passwords = PasswordHashingService(time_cost=2, memory_cost=8192)
    resp = client.post("/sign-in", json={"identifier": user["username"], "password": STRONG_PASSWORD})
    assert resp.status_code == 200

    new_hash = accounts.user_store.load()[0]["passwordHash"]
    assert new_hash != old_hash
    assert accounts.passwords.needs_rehash(new_hash) is False
