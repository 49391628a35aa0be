import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["USAGE_TRACKING_ENABLED"] = "false"
os.environ["EMAIL_NOTIFICATIONS_ENABLED"] = "false"
os.environ["SMS_NOTIFICATIONS_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("CREDENTIAL_VALIDATION_URL", None)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from visitingvet.constants import ROLE_ADMIN, ROLE_CLINIC, ROLE_PET_OWNER, ROLE_PROVIDER  # noqa: E402
from visitingvet.database import Base, SessionLocal, engine  # noqa: E402
from visitingvet.main import app  # noqa: E402
from visitingvet.models import Availability, ProviderProfile, Service, User  # noqa: E402
from visitingvet.security_utils import create_jwt_token, hash_password  # noqa: E402

PASSWORD = "Sturdy#Passw0rd!"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=ROLE_PET_OWNER, email=None, password=PASSWORD, **fields):
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@example.com",
            hashed_password=hash_password(password),
            name=fields.pop("name", f"{role} {counter['n']}"),
            role=role,
            last_activity=datetime.utcnow(),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user) -> dict:
    token = create_jwt_token(
        {"sub": str(user.id), "role": user.role, "type": "access"}, timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner(make_user):
    return make_user(ROLE_PET_OWNER)


@pytest.fixture
def clinic(make_user):
    return make_user(ROLE_CLINIC)


@pytest.fixture
def admin(make_user):
    return make_user(ROLE_ADMIN)


@pytest.fixture
def provider_setup(db, make_user):
    """Verified provider with a profile, one 60 minute service and weekday 09:00-17:00 hours"""
    provider = make_user(ROLE_PROVIDER, is_verified=True)
    profile = ProviderProfile(user_id=provider.id, business_name="Mobile Paws", animal_types=["Dog", "Cat"])
    db.add(profile)
    db.flush()
    service = Service(
        provider_profile_id=profile.id, name="Wellness Exam", estimated_duration_minutes=60, price=90.0
    )
    db.add(service)
    db.add(
        Availability(
            provider_profile_id=profile.id,
            weekly_schedule=[
                {"day_of_week": day, "start_time": "09:00", "end_time": "17:00", "is_available": True}
                for day in range(1, 6)
            ],
            special_dates=[],
        )
    )
    db.commit()
    db.refresh(profile)
    db.refresh(service)
    return provider, profile, service


def next_weekday(hour: int, minute: int = 0) -> datetime:
    """A Monday-Friday datetime at least two days out"""
    day = datetime.utcnow().date() + timedelta(days=2)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return datetime(day.year, day.month, day.day, hour, minute)
