from datetime import timedelta

from conftest import auth_headers, next_weekday
from visitingvet.models import Notification


def book(client, owner, profile, service, when):
    return client.post(
        "/appointments",
        headers=auth_headers(owner),
        json={
            "provider_profile_id": profile.id,
            "service_id": service.id,
            "appointment_time": when.isoformat() + "Z",
            "owner_notes": "Annual checkup <b>please</b>",
        },
    )


def test_booking_creates_requested_appointment(client, db, owner, provider_setup):
    provider, profile, service = provider_setup
    when = next_weekday(10)

    response = book(client, owner, profile, service, when)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "Requested"
    assert body["estimated_end_time"].startswith((when + timedelta(minutes=60)).strftime("%Y-%m-%dT%H:%M"))
    assert "<b>" not in body["owner_notes"]

    notes = db.query(Notification).filter(Notification.user_id == provider.id).all()
    assert [n.type for n in notes] == ["appointment"]


def test_overlapping_booking_conflicts(client, make_user, owner, provider_setup):
    _, profile, service = provider_setup
    assert book(client, owner, profile, service, next_weekday(10)).status_code == 201

    other_owner = make_user("PetOwner")
    conflict = book(client, other_owner, profile, service, next_weekday(10, 30))
    assert conflict.status_code == 400
    assert "conflicts" in conflict.json()["detail"]


def test_back_to_back_bookings_allowed(client, owner, provider_setup):
    _, profile, service = provider_setup
    assert book(client, owner, profile, service, next_weekday(10)).status_code == 201
    assert book(client, owner, profile, service, next_weekday(11)).status_code == 201
    assert book(client, owner, profile, service, next_weekday(9)).status_code == 201


def test_outside_hours_and_past_rejected(client, owner, provider_setup):
    _, profile, service = provider_setup
    assert book(client, owner, profile, service, next_weekday(16, 30)).status_code == 400
    assert book(client, owner, profile, service, next_weekday(7)).status_code == 400
    assert book(client, owner, profile, service, next_weekday(10) - timedelta(days=30)).status_code == 400


def test_cancelled_appointment_frees_the_slot(client, owner, provider_setup):
    provider, profile, service = provider_setup
    first = book(client, owner, profile, service, next_weekday(13)).json()
    cancel = client.put(f"/appointments/{first['id']}/cancel", headers=auth_headers(owner), json={"reason": "sick"})
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "CancelledByOwner"

    assert book(client, owner, profile, service, next_weekday(13)).status_code == 201


def test_only_pet_owners_book(client, clinic, provider_setup):
    _, profile, service = provider_setup
    assert book(client, clinic, profile, service, next_weekday(10)).status_code == 403


def test_provider_status_transitions(client, owner, provider_setup):
    provider, profile, service = provider_setup
    appointment = book(client, owner, profile, service, next_weekday(14)).json()
    url = f"/appointments/{appointment['id']}/status"

    assert client.put(url, headers=auth_headers(owner), json={"status": "Confirmed"}).status_code == 403
    assert client.put(url, headers=auth_headers(provider), json={"status": "Completed"}).status_code == 400

    confirmed = client.put(url, headers=auth_headers(provider), json={"status": "Confirmed"})
    assert confirmed.status_code == 200
    completed = client.put(url, headers=auth_headers(provider), json={"status": "Completed", "provider_notes": "Healthy"})
    assert completed.json()["status"] == "Completed"
    assert client.put(url, headers=auth_headers(provider), json={"status": "Cancelled"}).status_code == 400


def test_listings_are_scoped(client, make_user, owner, provider_setup):
    provider, profile, service = provider_setup
    appointment = book(client, owner, profile, service, next_weekday(10)).json()

    mine = client.get("/appointments/my-appointments", headers=auth_headers(owner)).json()
    assert [a["id"] for a in mine] == [appointment["id"]]
    theirs = client.get("/appointments/provider", headers=auth_headers(provider)).json()
    assert [a["id"] for a in theirs] == [appointment["id"]]

    stranger = make_user("PetOwner")
    assert client.get(f"/appointments/{appointment['id']}", headers=auth_headers(stranger)).status_code == 403


def test_open_slots_exclude_bookings(client, owner, provider_setup):
    _, profile, service = provider_setup
    when = next_weekday(10)
    book(client, owner, profile, service, when)

    response = client.get(
        f"/availability/{profile.id}/slots",
        params={"date": when.strftime("%Y-%m-%d"), "service_id": service.id, "step_minutes": 60},
    )
    assert response.status_code == 200
    starts = [s[11:16] for s in response.json()["slots"]]
    assert "10:00" not in starts
    assert "09:00" in starts and "11:00" in starts
