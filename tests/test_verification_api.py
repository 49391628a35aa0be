from unittest.mock import patch

import pytest

from conftest import auth_headers
from visitingvet.models import AdminActionLog, DocumentAccessLog, Notification, User, VerificationDocument

PDF = ("license.pdf", b"%PDF-1.4 license scan", "application/pdf")


@pytest.fixture
def storage():
    with patch("visitingvet.domain.verification.service.upload_document") as upload, patch(
        "visitingvet.domain.verification.service.delete_document"
    ) as delete, patch(
        "visitingvet.domain.verification.service.get_signed_url", return_value="https://signed.example/doc"
    ) as signed:
        yield {"upload": upload, "delete": delete, "signed": signed}


@pytest.fixture
def provider(make_user):
    return make_user(
        "MVSProvider", street="1 Main St", city="Austin", state="TX", zip_code="78701"
    )


def upload(client, user, document_type="veterinary_license", expiration_date="2099-01-01", file=PDF):
    data = {"document_type": document_type}
    if expiration_date:
        data["expiration_date"] = expiration_date
    return client.post("/verification/documents", headers=auth_headers(user), data=data, files={"file": file})


def test_upload_stores_document_privately(client, db, provider, storage):
    response = upload(client, provider)
    assert response.status_code == 201
    assert response.json()["document_type"] == "VETERINARY_LICENSE"
    storage["upload"].assert_called_once()

    status = client.get("/verification/me", headers=auth_headers(provider)).json()
    assert status["verification_status"] == "Pending"
    assert status["request"]["submitted_at"] is None


def test_upload_validation(client, provider, storage, owner):
    assert upload(client, provider, file=("notes.txt", b"hello", "text/plain")).status_code == 400
    assert upload(client, provider, file=("scan.png", b"%PDF", "application/pdf")).status_code == 400
    assert upload(client, provider, expiration_date="31/12/2030").status_code == 400
    assert upload(client, provider, document_type="  ").status_code == 400
    assert upload(client, owner).status_code == 403
    storage["upload"].assert_not_called()


def test_unsubmitted_uploads_stay_out_of_queue(client, admin, provider, storage):
    upload(client, provider)
    queue = client.get("/admin/verifications/pending", headers=auth_headers(admin)).json()
    assert queue["items"] == []

    metrics = client.get("/admin/verifications/metrics", headers=auth_headers(admin)).json()
    assert metrics["by_status"] == {}

    rate = client.get("/analytics/verification-rate", headers=auth_headers(admin)).json()
    assert rate["submitted"] == 0
    assert rate["currentlyPending"] == 0

    client.post("/verification/submit", headers=auth_headers(provider), json={})
    rate = client.get("/analytics/verification-rate", headers=auth_headers(admin)).json()
    assert rate["submitted"] == 1
    assert rate["currentlyPending"] == 1


def test_submit_scores_and_queues(client, db, admin, provider, storage):
    assert client.post("/verification/submit", headers=auth_headers(provider), json={}).status_code == 400

    upload(client, provider)
    submitted = client.post(
        "/verification/submit", headers=auth_headers(provider), json={"priority": "Expedited", "notes": "Urgent"}
    )
    assert submitted.status_code == 200
    body = submitted.json()
    assert body["priority"] == "Expedited"
    assert body["submitted_at"]
    assert body["sla_status"] == "On Track"
    # No provider profile, so credentials are unknown
    assert body["risk_score"] == 5
    assert body["risk_level"] == "low"

    queue = client.get("/admin/verifications/pending", headers=auth_headers(admin)).json()
    assert len(queue["items"]) == 1
    assert queue["items"][0]["sla"]["goal_hours"] == 24
    assert queue["items"][0]["user"]["id"] == provider.id

    assert db.query(Notification).filter(Notification.user_id == admin.id).count() == 1


def test_approve_marks_user_verified(client, db, admin, provider, storage):
    upload(client, provider)
    request_id = client.post("/verification/submit", headers=auth_headers(provider), json={}).json()["id"]

    approved = client.put(f"/admin/verifications/{request_id}/approve", headers=auth_headers(admin))
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"
    assert approved.json()["sla_status"] == "Completed"

    db.expire_all()
    user = db.query(User).filter(User.id == provider.id).one()
    assert user.is_verified is True
    assert user.verification_status == "Approved"
    assert db.query(AdminActionLog).filter(AdminActionLog.action_type == "VerifyUser").count() == 1

    again = client.put(f"/admin/verifications/{request_id}/approve", headers=auth_headers(admin))
    assert again.status_code == 400
    assert upload(client, provider).status_code == 400


def test_reject_then_resubmit(client, db, admin, provider, storage):
    upload(client, provider)
    request_id = client.post("/verification/submit", headers=auth_headers(provider), json={}).json()["id"]

    assert client.put(
        f"/admin/verifications/{request_id}/reject", headers=auth_headers(admin), json={"reason": ""}
    ).status_code == 422
    rejected = client.put(
        f"/admin/verifications/{request_id}/reject",
        headers=auth_headers(admin),
        json={"reason": "Scan is illegible"},
    )
    assert rejected.json()["status"] == "Rejected"
    assert "illegible" in rejected.json()["notes"]

    resubmitted = client.post("/verification/submit", headers=auth_headers(provider), json={})
    assert resubmitted.status_code == 200
    assert resubmitted.json()["status"] == "Pending"
    assert resubmitted.json()["completed_at"] is None

    metrics = client.get("/admin/verifications/metrics", headers=auth_headers(admin)).json()
    assert metrics["by_status"] == {"Pending": 1}
    assert metrics["pending_by_sla_status"] == {"On Track": 1}


def test_signed_url_access_is_logged(client, db, admin, provider, storage):
    document_id = upload(client, provider).json()["id"]

    response = client.get(
        f"/admin/verifications/documents/{document_id}/signed-url",
        headers={**auth_headers(admin), "X-Forwarded-For": "203.0.113.9"},
        params={"action": "DOWNLOAD"},
    )
    assert response.status_code == 200
    assert response.json() == {"url": "https://signed.example/doc", "expires_in": 3600}

    log = db.query(DocumentAccessLog).one()
    assert log.action == "DOWNLOAD"
    assert log.ip_address == "203.0.113.9"
    assert log.target_user_id == provider.id


def test_annotations_replace_and_read(client, admin, provider, storage):
    document_id = upload(client, provider).json()["id"]
    url = f"/admin/verifications/documents/{document_id}/annotations"

    bad = client.put(url, headers=auth_headers(admin), json={"annotations": [{"type": "note", "page": 1, "x": 1, "y": 1}]})
    assert bad.status_code == 422

    saved = client.put(
        url,
        headers=auth_headers(admin),
        json={
            "annotations": [
                {"type": "highlight", "page": 1, "x": 10, "y": 20, "width": 100, "height": 12, "color": "#ff0"},
                {"type": "note", "page": 2, "x": 5, "y": 5, "text": "Expiry smudged"},
            ]
        },
    )
    assert saved.status_code == 200
    annotations = client.get(url, headers=auth_headers(admin)).json()["annotations"]
    assert [a["type"] for a in annotations] == ["highlight", "note"]
    assert all(a["id"] for a in annotations)


def test_permissions_are_enforced(client, make_user, provider, storage):
    reader = make_user("Admin", admin_permissions=["verifications:read"])
    assert client.get("/admin/verifications/pending", headers=auth_headers(reader)).status_code == 200
    assert client.get("/admin/verifications/metrics", headers=auth_headers(reader)).status_code == 403
    assert client.put("/admin/verifications/1/approve", headers=auth_headers(reader)).status_code == 403
    assert client.get("/admin/verifications/pending", headers=auth_headers(provider)).status_code == 403


def test_delete_pending_document(client, db, provider, storage):
    document_id = upload(client, provider).json()["id"]
    response = client.delete(f"/verification/documents/{document_id}", headers=auth_headers(provider))
    assert response.status_code == 200
    storage["delete"].assert_called_once()
    assert db.query(VerificationDocument).count() == 0
