from datetime import datetime

from conftest import auth_headers, next_weekday
from visitingvet.models import Appointment, Availability, ProviderProfile, Service
from visitingvet.services.availability_service import is_time_available


def test_profile_upsert_and_lookup(client, make_user):
    provider = make_user("MVSProvider")
    headers = auth_headers(provider)
    assert client.get("/profiles/visiting-vet/me", headers=headers).status_code == 404

    created = client.post(
        "/profiles/visiting-vet",
        headers=headers,
        json={"business_name": "Hoof and Paw", "animal_types": ["Horse"], "service_area_zip_codes": ["78701"]},
    )
    assert created.status_code == 200
    profile_id = created.json()["id"]

    updated = client.post("/profiles/visiting-vet", headers=headers, json={"bio": "Equine dentistry"})
    assert updated.json()["id"] == profile_id
    assert updated.json()["business_name"] == "Hoof and Paw"

    bad_zip = client.post("/profiles/visiting-vet", headers=headers, json={"service_area_zip_codes": ["7870"]})
    assert bad_zip.status_code == 422
    assert client.get(f"/profiles/visiting-vet/{profile_id}").status_code == 200


def test_search_filters(client, db, make_user, provider_setup):
    other = make_user("MVSProvider", name="Farm Vet")
    headers = auth_headers(other)
    client.post(
        "/profiles/visiting-vet",
        headers=headers,
        json={"business_name": "Barnyard Care", "animal_types": ["Horse", "Goat"], "business_zip_code": "73301"},
    )
    banned = make_user("MVSProvider", is_banned=True, ban_reason="x")
    db.add(ProviderProfile(user_id=banned.id, business_name="Shady Vets", animal_types=["Dog"]))
    db.commit()

    def names(**params):
        items = client.get("/profiles/visiting-vet/search", params=params).json()["items"]
        return sorted(item["business_name"] for item in items)

    assert names() == ["Barnyard Care", "Mobile Paws"]
    assert names(animal_types="Dog") == ["Mobile Paws"]
    assert names(animal_types="Horse,Goat") == ["Barnyard Care"]
    assert names(location="73301") == ["Barnyard Care"]
    assert names(search="farm") == ["Barnyard Care"]


def test_services_crud_and_deactivation(client, db, owner, provider_setup, make_user):
    provider, profile, service = provider_setup
    headers = auth_headers(provider)

    created = client.post(
        "/services", headers=headers, json={"name": "Vaccination", "estimated_duration_minutes": 30, "price": 40}
    )
    assert created.status_code == 201
    new_id = created.json()["id"]

    intruder = make_user("MVSProvider")
    assert client.put(f"/services/{new_id}", headers=auth_headers(intruder), json={"price": 1}).status_code == 403
    assert client.put(f"/services/{new_id}", headers=headers, json={"price": 45}).json()["price"] == 45

    assert client.delete(f"/services/{new_id}", headers=headers).json()["message"] == "Service deleted"

    when = next_weekday(10)
    db.add(
        Appointment(
            pet_owner_id=owner.id,
            provider_profile_id=profile.id,
            service_id=service.id,
            appointment_time=when,
            estimated_end_time=when.replace(hour=11),
        )
    )
    db.commit()
    assert client.delete(f"/services/{service.id}", headers=headers).json()["message"] == "Service deactivated"

    db.expire_all()
    assert db.query(Service).filter(Service.id == service.id).one().is_active is False
    assert client.get(f"/profiles/visiting-vet/{profile.id}/services").json() == []


def test_pets_belong_to_their_owner(client, owner, make_user):
    headers = auth_headers(owner)
    pet = client.post("/pets", headers=headers, json={"name": "Biscuit", "species": "Dog", "age_years": 4})
    assert pet.status_code == 201
    pet_id = pet.json()["id"]

    assert [p["name"] for p in client.get("/pets", headers=headers).json()] == ["Biscuit"]
    other = make_user("PetOwner")
    assert client.get(f"/pets/{pet_id}", headers=auth_headers(other)).status_code == 403
    assert client.put(f"/pets/{pet_id}", headers=headers, json={"weight_kg": 12.5}).json()["weight_kg"] == 12.5
    assert client.delete(f"/pets/{pet_id}", headers=headers).status_code == 200


def test_availability_management(client, make_user):
    provider = make_user("MVSProvider")
    headers = auth_headers(provider)
    client.post("/profiles/visiting-vet", headers=headers, json={"business_name": "Solo Vet"})

    assert client.get("/availability/me", headers=headers).json() == {"weekly_schedule": [], "special_dates": []}

    schedule = {"weekly_schedule": [{"day_of_week": 2, "start_time": "10:00", "end_time": "09:00"}]}
    assert client.post("/availability/me", headers=headers, json=schedule).status_code == 400

    schedule["weekly_schedule"][0]["end_time"] = "15:00"
    saved = client.post("/availability/me", headers=headers, json=schedule)
    assert saved.status_code == 200
    assert saved.json()["weekly_schedule"][0]["day_of_week"] == 2


def test_clinic_provider_directory(client, clinic, make_user, provider_setup):
    make_user("MVSProvider", is_verified=False)
    listing = client.get("/clinics/providers", headers=auth_headers(clinic)).json()
    assert [p["business_name"] for p in listing] == ["Mobile Paws"]


def test_unpadded_special_date_still_blocks_the_day(client, db, make_user):
    provider = make_user("MVSProvider")
    headers = auth_headers(provider)
    client.post("/profiles/visiting-vet", headers=headers, json={"business_name": "Solo Vet"})

    schedule = {
        "weekly_schedule": [{"day_of_week": 1, "start_time": "09:00", "end_time": "17:00"}],
        "special_dates": [{"date": "2031-1-6", "is_available": False, "note": "Conference"}],
    }
    saved = client.post("/availability/me", headers=headers, json=schedule)
    assert saved.status_code == 200
    assert saved.json()["special_dates"][0]["date"] == "2031-01-06"

    availability = db.query(Availability).one()
    assert is_time_available(availability, datetime(2031, 1, 6, 10, 0), 30) is False
    assert is_time_available(availability, datetime(2031, 1, 13, 10, 0), 30) is True

    schedule["special_dates"][0]["date"] = "2031-02-30"
    assert client.post("/availability/me", headers=headers, json=schedule).status_code == 422
