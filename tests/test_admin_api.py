from conftest import PASSWORD, auth_headers
from visitingvet.models import AdminActionLog, Notification, User, VerificationRequest


def test_ban_blocks_access_and_unban_restores(client, db, admin, owner):
    headers = auth_headers(admin)
    banned = client.put(f"/admin/users/{owner.id}/ban", headers=headers, json={"reason": "Fraudulent listings"})
    assert banned.status_code == 200
    assert banned.json()["is_banned"] is True

    assert client.get("/auth/me", headers=auth_headers(owner)).status_code == 403
    assert client.put(f"/admin/users/{owner.id}/ban", headers=headers, json={}).status_code == 400

    assert client.put(f"/admin/users/{owner.id}/unban", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=auth_headers(owner)).status_code == 200

    actions = [log.action_type for log in db.query(AdminActionLog).order_by(AdminActionLog.id)]
    assert actions == ["BanUser", "UnbanUser"]


def test_admins_cannot_be_banned(client, make_user, admin):
    other_admin = make_user("Admin")
    assert client.put(f"/admin/users/{other_admin.id}/ban", headers=auth_headers(admin), json={}).status_code == 400


def test_manual_verify_closes_pending_request(client, db, admin, make_user):
    provider = make_user("MVSProvider", verification_status="Pending")
    db.add(VerificationRequest(user_id=provider.id, status="Pending"))
    db.commit()

    response = client.put(f"/admin/users/{provider.id}/verify", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["is_verified"] is True

    db.expire_all()
    request = db.query(VerificationRequest).filter(VerificationRequest.user_id == provider.id).one()
    assert request.status == "Approved"
    assert request.reviewed_by_id == admin.id


def test_warning_increments_level_and_notifies(client, db, admin, owner):
    response = client.put(f"/admin/users/{owner.id}/warn", headers=auth_headers(admin), json={"reason": "Rude reviews"})
    assert response.status_code == 200
    assert response.json()["warning_level"] == 1
    note = db.query(Notification).filter(Notification.user_id == owner.id).one()
    assert note.type == "moderation"


def test_bulk_action_reports_each_user(client, db, admin, make_user):
    first = make_user("PetOwner")
    second = make_user("Clinic", is_banned=True, ban_reason="old")
    response = client.post(
        "/admin/users/bulk-action",
        headers=auth_headers(admin),
        json={"user_ids": [first.id, second.id, 9999], "action": "ban", "reason": "Spam wave"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 3
    assert body["succeeded"] == 1
    assert {f["user_id"] for f in body["failed"]} == {second.id, 9999}

    db.expire_all()
    assert db.query(User).filter(User.id == first.id).one().is_banned is True
    bulk = db.query(AdminActionLog).filter(AdminActionLog.action_type == "BulkAction").one()
    assert bulk.details["succeeded"] == 1


def test_create_admin_with_permissions(client, admin):
    payload = {
        "email": "analyst@example.com",
        "password": PASSWORD,
        "name": "Analyst",
        "role": "Admin",
        "admin_permissions": ["analytics:read"],
    }
    created = client.post("/admin/users/create", headers=auth_headers(admin), json=payload)
    assert created.status_code == 201
    assert client.post("/admin/users/create", headers=auth_headers(admin), json=payload).status_code == 409

    bad = {**payload, "email": "x@example.com", "admin_permissions": ["root"]}
    assert client.post("/admin/users/create", headers=auth_headers(admin), json=bad).status_code == 400


def test_scoped_admin_is_limited(client, make_user, owner):
    analyst = make_user("Admin", admin_permissions=["analytics:read"])
    headers = auth_headers(analyst)
    assert client.get("/admin/users", headers=headers).status_code == 403
    assert client.put(f"/admin/users/{owner.id}/ban", headers=headers, json={}).status_code == 403
    assert client.get("/analytics/segmentation", headers=headers).status_code == 200


def test_user_listing_filters(client, admin, make_user):
    make_user("PetOwner", name="Alice Smith")
    make_user("Clinic", name="Downtown Clinic")
    headers = auth_headers(admin)

    clinics = client.get("/admin/users", headers=headers, params={"role": "Clinic"}).json()
    assert [u["name"] for u in clinics["items"]] == ["Downtown Clinic"]

    found = client.get("/admin/users", headers=headers, params={"search": "alice"}).json()
    assert found["pagination"]["total"] == 1

    detail = client.get(f"/admin/users/{found['items'][0]['id']}", headers=headers).json()
    assert detail["verification"] is None
    assert client.get("/admin/users/9999", headers=headers).status_code == 404


def test_admin_logs_are_filterable(client, admin, owner):
    headers = auth_headers(admin)
    client.put(f"/admin/users/{owner.id}/warn", headers=headers, json={"reason": "First"})
    client.put(f"/admin/users/{owner.id}/ban", headers=headers, json={"reason": "Second"})

    logs = client.get("/admin/logs", headers=headers, params={"action_type": "BanUser"}).json()
    assert logs["pagination"]["total"] == 1
    assert logs["items"][0]["target_user_id"] == owner.id
