from conftest import auth_headers
from visitingvet.models import AdminActionLog, Setting


def test_upsert_groups_and_audits(client, db, admin):
    headers = auth_headers(admin)
    created = client.put(
        "/settings/max_service_radius",
        headers=headers,
        json={"value": 50, "value_type": "number", "category": "Providers", "description": "Miles"},
    )
    assert created.status_code == 200
    assert created.json()["value"] == 50

    client.put("/settings/maintenance_mode", headers=headers, json={"value": False, "value_type": "boolean"})
    updated = client.put("/settings/max_service_radius", headers=headers, json={"value": 75})
    assert updated.json()["value"] == 75

    grouped = client.get("/settings", headers=headers).json()
    assert [s["key"] for s in grouped["Providers"]] == ["max_service_radius"]
    assert [s["key"] for s in grouped["General"]] == ["maintenance_mode"]

    log = (
        db.query(AdminActionLog)
        .filter(AdminActionLog.action_type == "UpdateSetting")
        .order_by(AdminActionLog.id.desc())
        .first()
    )
    assert log.details == {"key": "max_service_radius", "previous": 50, "value": 75}


def test_type_mismatch_and_locked_settings(client, db, admin):
    headers = auth_headers(admin)
    client.put("/settings/support_email", headers=headers, json={"value": "help@visitingvet.com"})
    assert client.put("/settings/support_email", headers=headers, json={"value": 5}).status_code == 400
    assert client.put("/settings/flag", headers=headers, json={"value": 1, "value_type": "boolean"}).status_code == 400

    db.add(Setting(key="schema_version", value="3", value_type="string", is_editable=False, category="System"))
    db.commit()
    assert client.put("/settings/schema_version", headers=headers, json={"value": "4"}).status_code == 403
    assert client.get("/settings/schema_version", headers=headers).json()["value"] == "3"
    assert client.get("/settings/missing", headers=headers).status_code == 404


def test_settings_need_permission(client, make_user):
    limited = make_user("Admin", admin_permissions=["users:read"])
    assert client.get("/settings", headers=auth_headers(limited)).status_code == 403
