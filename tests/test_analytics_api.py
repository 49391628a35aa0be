from datetime import datetime, timedelta

from conftest import auth_headers


def iso(dt):
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def test_user_growth_counts_range(client, admin, make_user):
    base = datetime(2030, 4, 1)
    make_user("PetOwner", created_at=base - timedelta(days=5))
    make_user("PetOwner", created_at=base + timedelta(days=1, hours=3))
    make_user("Clinic", created_at=base + timedelta(days=2, hours=3))

    response = client.get(
        "/analytics/user-growth",
        headers=auth_headers(admin),
        params={"start_date": iso(base), "end_date": iso(base + timedelta(days=3))},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["newUsers"] == 2
    assert body["byRole"] == {"PetOwner": 1, "Clinic": 1}
    assert [p["count"] for p in body["series"]] == [0, 1, 1]


def test_invalid_range_and_period(client, admin):
    headers = auth_headers(admin)
    reversed_range = {"start_date": "2030-02-01", "end_date": "2030-01-01"}
    assert client.get("/analytics/user-growth", headers=headers, params=reversed_range).status_code == 400
    assert client.get("/analytics/user-growth", headers=headers, params={"start_date": "soon"}).status_code == 400
    assert client.get("/analytics/service-usage", headers=headers, params={"period": "hour"}).status_code == 400


def test_comparison_against_previous_window(client, admin, make_user):
    base = datetime(2030, 4, 10)
    make_user("PetOwner", created_at=base - timedelta(days=3))
    for hours in (2, 5, 30):
        make_user("PetOwner", created_at=base + timedelta(hours=hours))

    response = client.get(
        "/analytics/comparison",
        headers=auth_headers(admin),
        params={"metric": "users", "start_date": iso(base), "end_date": iso(base + timedelta(days=7))},
    )
    body = response.json()
    assert body["current"] == 3
    assert body["previous"] == 1
    assert body["changePercent"] == 200.0

    bad = client.get("/analytics/comparison", headers=auth_headers(admin), params={"metric": "revenue"})
    assert bad.status_code == 400


def test_segmentation(client, admin, make_user, provider_setup):
    make_user("PetOwner", is_banned=True, ban_reason="spam")
    body = client.get("/analytics/segmentation", headers=auth_headers(admin)).json()
    assert body["byRole"]["MVSProvider"] == 1
    assert body["byBanStatus"]["banned"] == 1
    assert body["providersByAnimalType"] == {"Dog": 1, "Cat": 1}


def test_anomaly_endpoint(client, admin):
    response = client.get(
        "/analytics/anomalies", headers=auth_headers(admin), params={"metric": "new_users", "history_days": 7}
    )
    assert response.status_code == 200
    assert response.json()["metric"] == "new_users"
    assert client.get("/analytics/anomalies", headers=auth_headers(admin), params={"metric": "x"}).status_code == 400


def test_csv_export(client, admin, make_user):
    make_user("Clinic", name="Eastside Clinic", created_at=datetime.utcnow() - timedelta(days=1))
    response = client.get("/analytics/export", headers=auth_headers(admin), params={"report": "users"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("ID,Email,Name,Role")
    assert any("Eastside Clinic" in line for line in lines[1:])

    assert client.get("/analytics/export", headers=auth_headers(admin), params={"report": "payments"}).status_code == 400


def test_requires_analytics_permission(client, owner, make_user):
    assert client.get("/analytics/segmentation", headers=auth_headers(owner)).status_code == 403
    moderator = make_user("Admin", admin_permissions=["reviews:moderate"])
    assert client.get("/analytics/segmentation", headers=auth_headers(moderator)).status_code == 403
