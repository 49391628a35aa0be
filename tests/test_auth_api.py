from datetime import datetime, timedelta

import pyotp

from conftest import PASSWORD, auth_headers
from visitingvet.models import User, UserActivityLog


def register(client, email="newvet@example.com", role="MVSProvider", password=PASSWORD):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": "New Vet", "role": role},
    )


def test_register_returns_session(client, db):
    response = register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "MVSProvider"
    assert "jwt" in response.cookies

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "newvet@example.com"

    user = db.query(User).filter(User.email == "newvet@example.com").one()
    actions = [log.action for log in db.query(UserActivityLog).filter(UserActivityLog.user_id == user.id)]
    assert "REGISTER_SUCCESS" in actions


def test_register_rejects_duplicates_weak_passwords_and_admin_role(client):
    assert register(client).status_code == 201
    assert register(client).status_code == 409

    weak = register(client, email="weak@example.com", password="password")
    assert weak.status_code == 400
    assert weak.json()["detail"]["message"] == "Password is too weak"

    assert register(client, email="boss@example.com", role="Admin").status_code == 400


def test_login_and_refresh(client, make_user):
    user = make_user("PetOwner", email="owner@example.com")
    response = client.post("/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["user"]["id"] == user.id

    refreshed = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    # A refresh token is not an access token
    bad = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert bad.status_code == 401


def test_unknown_email_and_bad_password(client, make_user):
    make_user("PetOwner", email="owner@example.com")
    assert client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}).status_code == 401
    assert client.post("/auth/login", json={"email": "owner@example.com", "password": "nope"}).status_code == 401


def test_lockout_after_repeated_failures(client, db, make_user):
    user = make_user("PetOwner", email="owner@example.com")
    for _ in range(5):
        assert client.post("/auth/login", json={"email": "owner@example.com", "password": "wrong"}).status_code == 401

    locked = client.post("/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert locked.status_code == 423

    db.refresh(user)
    assert user.locked_until > datetime.utcnow()
    assert user.failed_login_attempts == 0


def test_banned_user_cannot_log_in_or_use_token(client, make_user):
    user = make_user("PetOwner", email="owner@example.com", is_banned=True, ban_reason="spam")
    assert client.post("/auth/login", json={"email": "owner@example.com", "password": PASSWORD}).status_code == 403
    assert client.get("/auth/me", headers=auth_headers(user)).status_code == 403


def test_inactive_session_expires(client, db, make_user):
    user = make_user("PetOwner")
    user.last_activity = datetime.utcnow() - timedelta(minutes=45)
    db.commit()
    response = client.get("/auth/me", headers=auth_headers(user))
    assert response.status_code == 401
    assert response.headers.get("X-Session-Expired") == "true"


def test_mfa_enrollment_and_login(client, db, make_user):
    user = make_user("MVSProvider", email="vet@example.com")
    headers = auth_headers(user)

    secret = client.post("/auth/mfa/setup", headers=headers).json()["secret"]
    assert client.post("/auth/mfa/verify", headers=headers, json={"code": "000000"}).status_code == 400

    enabled = client.post("/auth/mfa/verify", headers=headers, json={"code": pyotp.TOTP(secret).now()})
    assert enabled.status_code == 200
    backup_codes = enabled.json()["backup_codes"]
    assert len(backup_codes) == 10

    challenge = client.post("/auth/login", json={"email": "vet@example.com", "password": PASSWORD}).json()
    assert challenge["mfa_required"] is True
    assert "access_token" not in challenge

    session = client.post(
        "/auth/mfa/verify-login", json={"mfa_token": challenge["mfa_token"], "code": pyotp.TOTP(secret).now()}
    )
    assert session.status_code == 200
    assert session.json()["access_token"]

    # Backup codes are single use
    payload = {"mfa_token": challenge["mfa_token"], "code": backup_codes[0]}
    assert client.post("/auth/mfa/verify-login", json=payload).status_code == 200
    assert client.post("/auth/mfa/verify-login", json=payload).status_code == 401


def test_password_reset_flow(client, db, make_user):
    from visitingvet.security_utils import generate_timed_token

    user = make_user("PetOwner", email="owner@example.com")
    assert client.post("/auth/forgot-password", json={"email": "nobody@example.com"}).status_code == 200

    token = generate_timed_token({"user_id": user.id, "email": user.email}, salt="password-reset")
    response = client.post("/auth/reset-password", json={"token": token, "new_password": "N3w-Strong#Secret"})
    assert response.status_code == 200

    login = client.post("/auth/login", json={"email": "owner@example.com", "password": "N3w-Strong#Secret"})
    assert login.status_code == 200
    assert client.post("/auth/reset-password", json={"token": "garbage", "new_password": "N3w-Strong#Secret"}).status_code == 400
