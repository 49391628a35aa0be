from datetime import timedelta
from unittest.mock import patch

from conftest import auth_headers, next_weekday
from visitingvet.models import Appointment, Notification


def slot(start, minutes=60):
    return {"start_time": start.isoformat(), "end_time": (start + timedelta(minutes=minutes)).isoformat()}


def create_referral(client, clinic, provider, owner, **extra):
    payload = {
        "provider_id": provider.id,
        "pet_owner_id": owner.id,
        "service_type": "Dental cleaning",
        "description": "Tartar buildup on upper molars",
        "urgency": "high",
        **extra,
    }
    return client.post("/service-requests", headers=auth_headers(clinic), json=payload)


def test_referral_to_scheduled_appointment(client, db, clinic, owner, provider_setup):
    provider, profile, service = provider_setup
    created = create_referral(client, clinic, provider, owner, service_id=service.id)
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    offered = [slot(next_weekday(10)), slot(next_weekday(14))]
    accepted = client.put(
        f"/service-requests/{request_id}/provider-response",
        headers=auth_headers(provider),
        json={"status": "accepted", "message": "Either works", "available_time_slots": offered},
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    # Slots the provider did not offer are refused
    bogus = client.put(
        f"/service-requests/{request_id}/pet-owner-response",
        headers=auth_headers(owner),
        json={"status": "selected", "selected_time_slot": slot(next_weekday(16))},
    )
    assert bogus.status_code == 400

    scheduled = client.put(
        f"/service-requests/{request_id}/pet-owner-response",
        headers=auth_headers(owner),
        json={"status": "selected", "selected_time_slot": offered[1]},
    )
    assert scheduled.status_code == 200
    body = scheduled.json()
    assert body["status"] == "scheduled"

    appointment = db.query(Appointment).filter(Appointment.id == body["scheduled_appointment_id"]).one()
    assert appointment.status == "Confirmed"
    assert appointment.service_id == service.id
    assert appointment.service_request_id == request_id

    day = next_weekday(14).strftime("%Y-%m-%d")
    clinic_view = client.get("/clinics/appointments", headers=auth_headers(clinic), params={"date": day})
    assert [a["id"] for a in clinic_view.json()] == [appointment.id]

    done = client.put(
        f"/service-requests/{request_id}/status",
        headers=auth_headers(clinic),
        json={"status": "completed", "result_notes": "All clean"},
    )
    assert done.json()["status"] == "completed"
    assert done.json()["completed_at"]

    clinic_notes = db.query(Notification).filter(Notification.user_id == clinic.id).count()
    assert clinic_notes >= 2


def test_accepting_requires_time_slots(client, clinic, owner, provider_setup):
    provider, _, _ = provider_setup
    request_id = create_referral(client, clinic, provider, owner).json()["id"]
    response = client.put(
        f"/service-requests/{request_id}/provider-response",
        headers=auth_headers(provider),
        json={"status": "accepted", "available_time_slots": []},
    )
    assert response.status_code == 400


def test_selecting_a_booked_slot_is_refused(client, db, make_user, clinic, owner, provider_setup):
    provider, profile, service = provider_setup
    request_id = create_referral(client, clinic, provider, owner, service_id=service.id).json()["id"]
    offered = [slot(next_weekday(10)), slot(next_weekday(14))]
    client.put(
        f"/service-requests/{request_id}/provider-response",
        headers=auth_headers(provider),
        json={"status": "accepted", "available_time_slots": offered},
    )

    # Another owner books 10:30 directly before the referral is scheduled
    other = make_user("PetOwner")
    db.add(
        Appointment(
            pet_owner_id=other.id,
            provider_profile_id=profile.id,
            service_id=service.id,
            appointment_time=next_weekday(10, 30),
            estimated_end_time=next_weekday(11, 30),
            status="Confirmed",
        )
    )
    db.commit()

    clash = client.put(
        f"/service-requests/{request_id}/pet-owner-response",
        headers=auth_headers(owner),
        json={"status": "selected", "selected_time_slot": offered[0]},
    )
    assert clash.status_code == 400
    assert "conflicts" in clash.json()["detail"]
    assert db.query(Appointment).count() == 1

    scheduled = client.put(
        f"/service-requests/{request_id}/pet-owner-response",
        headers=auth_headers(owner),
        json={"status": "selected", "selected_time_slot": offered[1]},
    )
    assert scheduled.json()["status"] == "scheduled"


def test_declines_end_the_request(client, clinic, owner, provider_setup):
    provider, _, _ = provider_setup
    request_id = create_referral(client, clinic, provider, owner).json()["id"]
    declined = client.put(
        f"/service-requests/{request_id}/provider-response",
        headers=auth_headers(provider),
        json={"status": "declined", "message": "Fully booked"},
    )
    assert declined.json()["status"] == "declined"

    again = client.put(
        f"/service-requests/{request_id}/provider-response",
        headers=auth_headers(provider),
        json={"status": "accepted", "available_time_slots": [slot(next_weekday(10))]},
    )
    assert again.status_code == 400
    cancel = client.put(f"/service-requests/{request_id}/status", headers=auth_headers(clinic), json={"status": "cancelled"})
    assert cancel.status_code == 400


def test_referral_validation_and_access(client, make_user, clinic, owner, provider_setup):
    provider, _, _ = provider_setup
    assert create_referral(client, clinic, owner, owner).status_code == 404
    assert create_referral(client, clinic, provider, provider).status_code == 404
    assert create_referral(client, owner, provider, owner).status_code == 403

    request_id = create_referral(client, clinic, provider, owner).json()["id"]
    outsider = make_user("Clinic")
    assert client.get(f"/service-requests/{request_id}", headers=auth_headers(outsider)).status_code == 403
    assert client.get(f"/service-requests/{request_id}", headers=auth_headers(owner)).status_code == 200

    listing = client.get("/service-requests", headers=auth_headers(provider)).json()
    assert listing["pagination"]["total"] == 1


def test_completing_unscheduled_request_fails(client, clinic, owner, provider_setup):
    provider, _, _ = provider_setup
    request_id = create_referral(client, clinic, provider, owner).json()["id"]
    response = client.put(f"/service-requests/{request_id}/status", headers=auth_headers(clinic), json={"status": "completed"})
    assert response.status_code == 400


def test_attachments_go_to_storage(client, clinic, owner, provider_setup):
    provider, _, _ = provider_setup
    request_id = create_referral(client, clinic, provider, owner).json()["id"]

    with patch("visitingvet.domain.service_requests.service.upload_document") as upload:
        response = client.post(
            f"/service-requests/{request_id}/attachments",
            headers=auth_headers(clinic),
            files={"file": ("xray.png", b"\x89PNG fake", "image/png")},
        )
    assert response.status_code == 200
    attachments = response.json()["attachments"]
    assert attachments[0]["file_name"] == "xray.png"
    upload.assert_called_once()

    with patch(
        "visitingvet.domain.service_requests.service.get_signed_url", return_value="https://signed.example/x"
    ):
        url = client.get(f"/service-requests/{request_id}/attachments/0/url", headers=auth_headers(provider))
    assert url.json()["url"] == "https://signed.example/x"
    assert client.get(f"/service-requests/{request_id}/attachments/5/url", headers=auth_headers(provider)).status_code == 404
