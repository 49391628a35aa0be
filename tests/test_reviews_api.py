from datetime import datetime, timedelta

import pytest

from conftest import auth_headers
from visitingvet.models import Appointment, ProviderProfile


@pytest.fixture
def completed_appointment(db, owner, provider_setup):
    def _make(pet_owner=owner, status="Completed"):
        _, profile, service = provider_setup
        start = datetime.utcnow() - timedelta(days=3)
        appointment = Appointment(
            pet_owner_id=pet_owner.id,
            provider_profile_id=profile.id,
            service_id=service.id,
            appointment_time=start,
            estimated_end_time=start + timedelta(hours=1),
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


def post_review(client, user, appointment, rating=5, comment="Gentle with our cat"):
    return client.post(
        "/reviews",
        headers=auth_headers(user),
        json={"appointment_id": appointment.id, "rating": rating, "comment": comment},
    )


def profile_rating(db, profile_id):
    db.expire_all()
    profile = db.query(ProviderProfile).filter(ProviderProfile.id == profile_id).one()
    return profile.average_rating, profile.number_of_reviews


def test_only_completed_own_appointments(client, make_user, owner, completed_appointment):
    assert post_review(client, owner, completed_appointment(status="Confirmed")).status_code == 400

    appointment = completed_appointment()
    stranger = make_user("PetOwner")
    assert post_review(client, stranger, appointment).status_code == 403
    assert post_review(client, owner, appointment, rating=6).status_code == 422

    assert post_review(client, owner, appointment).status_code == 201
    assert post_review(client, owner, appointment).status_code == 400


def test_rating_counts_approved_reviews_only(client, db, admin, make_user, owner, provider_setup, completed_appointment):
    _, profile, _ = provider_setup
    second_owner = make_user("PetOwner")
    first = post_review(client, owner, completed_appointment(), rating=5).json()
    second = post_review(client, second_owner, completed_appointment(second_owner), rating=4).json()

    assert profile_rating(db, profile.id) == (None, 0)
    public = client.get(f"/reviews/provider/{profile.id}").json()
    assert public == []

    pending = client.get("/reviews/pending", headers=auth_headers(admin)).json()
    assert [r["id"] for r in pending] == [first["id"], second["id"]]

    for review in (first, second):
        response = client.put(
            f"/reviews/{review['id']}/moderate", headers=auth_headers(admin), json={"status": "Approved"}
        )
        assert response.status_code == 200
    assert profile_rating(db, profile.id) == (4.5, 2)

    client.put(f"/reviews/{second['id']}/moderate", headers=auth_headers(admin), json={"status": "Rejected"})
    assert profile_rating(db, profile.id) == (5.0, 1)


def test_editing_sends_review_back_to_moderation(client, db, admin, owner, provider_setup, completed_appointment):
    _, profile, _ = provider_setup
    review = post_review(client, owner, completed_appointment(), rating=5).json()
    client.put(f"/reviews/{review['id']}/moderate", headers=auth_headers(admin), json={"status": "Approved"})
    assert profile_rating(db, profile.id) == (5.0, 1)

    edited = client.put(f"/reviews/{review['id']}", headers=auth_headers(owner), json={"rating": 2})
    assert edited.json()["moderation_status"] == "Pending"
    assert profile_rating(db, profile.id) == (None, 0)


def test_provider_responds_to_approved_review(client, admin, owner, provider_setup, completed_appointment):
    provider, _, _ = provider_setup
    review = post_review(client, owner, completed_appointment()).json()
    url = f"/reviews/{review['id']}/respond"

    assert client.post(url, headers=auth_headers(provider), json={"response_comment": "Thanks!"}).status_code == 400
    client.put(f"/reviews/{review['id']}/moderate", headers=auth_headers(admin), json={"status": "Approved"})
    response = client.post(url, headers=auth_headers(provider), json={"response_comment": "Thanks!"})
    assert response.status_code == 200
    assert response.json()["provider_response_comment"] == "Thanks!"


def test_delete_rules(client, db, admin, make_user, owner, provider_setup, completed_appointment):
    _, profile, _ = provider_setup
    review = post_review(client, owner, completed_appointment()).json()
    client.put(f"/reviews/{review['id']}/moderate", headers=auth_headers(admin), json={"status": "Approved"})

    other = make_user("PetOwner")
    assert client.delete(f"/reviews/{review['id']}", headers=auth_headers(other)).status_code == 403
    assert client.delete(f"/reviews/{review['id']}", headers=auth_headers(admin)).status_code == 200
    assert profile_rating(db, profile.id) == (None, 0)
