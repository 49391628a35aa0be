import logging
import math
from datetime import datetime, timedelta
from typing import Optional

import pyotp
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_client_ip, get_current_user
from ..config import (
    ACCESS_COOKIE_NAME,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    IS_PRODUCTION,
    LOCKOUT_MINUTES,
    MAX_LOGIN_ATTEMPTS,
    REFRESH_COOKIE_NAME,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from ..constants import SELF_REGISTER_ROLES
from ..database import get_db
from ..email_service import EmailNotConfigured, send_password_reset_email, send_welcome_email
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..schemas import MessageResponse, UserResponse
from ..security_utils import (
    check_password_strength,
    create_jwt_token,
    decrypt_backup_codes,
    encrypt_backup_codes,
    generate_backup_codes,
    generate_timed_token,
    hash_password,
    verify_jwt_token,
    verify_password,
    verify_timed_token,
)
from ..services.audit_service import log_user_activity
from ..services.usage_tracking_service import log_usage
from ..shared.validators import validate_us_phone
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

PASSWORD_RESET_SALT = "password-reset"
PASSWORD_RESET_MAX_AGE = 3600
MFA_TOKEN_MINUTES = 5
MFA_ISSUER = "VisitingVet"


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=255)
    role: str
    phone_number: Optional[str] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class MFACodeRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=16)


class MFALoginRequest(BaseModel):
    mfa_token: str
    code: str = Field(..., min_length=6, max_length=16)


class MFADisableRequest(BaseModel):
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


# Rate limiters
rate_limit_register = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="register")
rate_limit_login = create_rate_limiter(limit=20, window_seconds=900, key_prefix="login")
rate_limit_mfa = create_rate_limiter(limit=10, window_seconds=300, key_prefix="mfa")
rate_limit_password_reset = create_rate_limiter(
    limit=5,
    window_seconds=3600,  # 1 hour
    key_prefix="password_reset",
)


def _set_cookie(response: Response, name: str, value: str, max_age: int):
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
    )


def _create_access_token(user: User) -> str:
    return create_jwt_token(
        {"sub": str(user.id), "role": user.role, "type": "access"},
        timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def _issue_session(response: Response, user: User) -> dict:
    """Create access/refresh tokens and set them as httpOnly cookies"""
    access_token = _create_access_token(user)
    refresh_token = create_jwt_token(
        {"sub": str(user.id), "type": "refresh"}, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    )
    _set_cookie(response, ACCESS_COOKIE_NAME, access_token, ACCESS_TOKEN_EXPIRE_MINUTES * 60)
    _set_cookie(response, REFRESH_COOKIE_NAME, refresh_token, REFRESH_TOKEN_EXPIRE_DAYS * 86400)
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


def _require_strong_password(password: str):
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_register),
):
    """Self-service signup for pet owners, providers and clinics"""
    if data.role not in SELF_REGISTER_ROLES:
        raise HTTPException(status_code=400, detail=f"Role must be one of {', '.join(SELF_REGISTER_ROLES)}")

    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    _require_strong_password(data.password)

    user = User(
        email=email,
        hashed_password=hash_password(data.password),
        name=sanitize_string(data.name),
        role=data.role,
        phone_number=data.phone_number,
        last_login=datetime.utcnow(),
        last_activity=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"✅ Registered {user.role} {user.email} (id={user.id})")

    log_usage(db, "USER_REGISTER", user.id, {"role": user.role})
    log_user_activity(db, user.id, "REGISTER_SUCCESS", ip_address=get_client_ip(request))

    try:
        await send_welcome_email(user.email, user.name, user.role)
    except (EmailNotConfigured, RuntimeError) as e:
        logger.warning(f"⚠️ Welcome email not sent to {user.email}: {e}")

    return _issue_session(response, user)


@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_login),
):
    ip = get_client_ip(request)
    now = datetime.utcnow()
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if not user:
        logger.warning(f"⚠️ Login attempt for unknown email {data.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.locked_until and user.locked_until > now:
        minutes = math.ceil((user.locked_until - now).total_seconds() / 60)
        log_user_activity(db, user.id, "LOGIN_FAILURE", "FAILURE", ip, error_message="Account locked")
        raise HTTPException(
            status_code=423,
            detail=f"Account locked due to too many failed attempts. Try again in {minutes} minutes.",
        )

    if not verify_password(data.password, user.hashed_password):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= MAX_LOGIN_ATTEMPTS:
            user.locked_until = now + timedelta(minutes=LOCKOUT_MINUTES)
            user.failed_login_attempts = 0
            logger.warning(f"🔒 Locked {user.email} for {LOCKOUT_MINUTES} minutes")
        db.commit()
        log_user_activity(db, user.id, "LOGIN_FAILURE", "FAILURE", ip, error_message="Invalid password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.is_banned:
        log_user_activity(db, user.id, "LOGIN_FAILURE", "FAILURE", ip, error_message="Account banned")
        raise HTTPException(status_code=403, detail=f"Account banned: {user.ban_reason}")

    user.failed_login_attempts = 0
    user.locked_until = None

    if user.mfa_enabled:
        db.commit()
        mfa_token = create_jwt_token(
            {"sub": str(user.id), "type": "mfa"}, timedelta(minutes=MFA_TOKEN_MINUTES)
        )
        logger.info(f"🔐 MFA challenge issued for {user.email}")
        return {"mfa_required": True, "mfa_token": mfa_token}

    user.last_login = now
    user.last_activity = now
    db.commit()

    log_user_activity(db, user.id, "LOGIN_SUCCESS", ip_address=ip)
    log_usage(db, "USER_LOGIN", user.id)
    logger.info(f"✅ Login: {user.email}")
    return _issue_session(response, user)


@router.post("/mfa/verify-login")
async def verify_mfa_login(
    data: MFALoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_mfa),
):
    """Second login step: a TOTP code or one unused backup code"""
    payload = verify_jwt_token(data.mfa_token, expected_type="mfa")
    if not payload:
        raise HTTPException(status_code=401, detail="MFA session expired, please log in again")

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user or not user.mfa_enabled or not user.mfa_secret:
        raise HTTPException(status_code=401, detail="MFA is not enabled for this account")
    if user.is_banned:
        raise HTTPException(status_code=403, detail=f"Account banned: {user.ban_reason}")

    ip = get_client_ip(request)
    code = data.code.strip()
    method = "totp"
    if not pyotp.TOTP(user.mfa_secret).verify(code, valid_window=1):
        backup_codes = decrypt_backup_codes(user.mfa_backup_codes or [])
        if code.upper() not in backup_codes:
            log_user_activity(db, user.id, "MFA_FAILURE", "FAILURE", ip, error_message="Invalid MFA code")
            raise HTTPException(status_code=401, detail="Invalid MFA code")
        backup_codes.remove(code.upper())
        user.mfa_backup_codes = encrypt_backup_codes(backup_codes)
        method = "backup_code"
        logger.info(f"🔑 Backup code consumed for {user.email}, {len(backup_codes)} left")

    now = datetime.utcnow()
    user.last_login = now
    user.last_activity = now
    db.commit()

    log_user_activity(db, user.id, "LOGIN_SUCCESS", ip_address=ip, details={"mfa_method": method})
    log_usage(db, "USER_LOGIN", user.id, {"mfa": True})
    return _issue_session(response, user)


@router.post("/mfa/setup")
async def setup_mfa(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Generate a TOTP secret; MFA is enabled once a code is verified"""
    if current_user.mfa_enabled:
        raise HTTPException(status_code=400, detail="MFA is already enabled")

    secret = pyotp.random_base32()
    current_user.mfa_secret = secret
    db.commit()

    uri = pyotp.TOTP(secret).provisioning_uri(name=current_user.email, issuer_name=MFA_ISSUER)
    return {"secret": secret, "provisioning_uri": uri}


@router.post("/mfa/verify")
async def verify_mfa_setup(
    data: MFACodeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not current_user.mfa_secret:
        raise HTTPException(status_code=400, detail="Run MFA setup first")
    if not pyotp.TOTP(current_user.mfa_secret).verify(data.code.strip(), valid_window=1):
        raise HTTPException(status_code=400, detail="Invalid verification code")

    backup_codes = generate_backup_codes()
    current_user.mfa_backup_codes = encrypt_backup_codes(backup_codes)
    current_user.mfa_enabled = True
    db.commit()

    log_user_activity(db, current_user.id, "MFA_ENABLED")
    logger.info(f"✅ MFA enabled for {current_user.email}")
    # Shown once; only the encrypted form is stored
    return {"message": "MFA enabled", "backup_codes": backup_codes}


@router.post("/mfa/disable", response_model=MessageResponse)
async def disable_mfa(
    data: MFADisableRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not current_user.mfa_enabled:
        raise HTTPException(status_code=400, detail="MFA is not enabled")
    if not verify_password(data.password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Incorrect password")

    current_user.mfa_enabled = False
    current_user.mfa_secret = None
    current_user.mfa_backup_codes = None
    db.commit()

    log_user_activity(db, current_user.id, "MFA_DISABLED")
    return {"message": "MFA disabled"}


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(ACCESS_COOKIE_NAME)
    response.delete_cookie(REFRESH_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/refresh")
async def refresh_access_token(
    request: Request,
    response: Response,
    data: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
):
    token = (data.refresh_token if data else None) or request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Refresh token missing")

    payload = verify_jwt_token(token, expected_type="refresh")
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user or user.is_banned:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    access_token = _create_access_token(user)
    _set_cookie(response, ACCESS_COOKIE_NAME, access_token, ACCESS_TOKEN_EXPIRE_MINUTES * 60)
    user.last_activity = datetime.utcnow()
    db.commit()
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_password_reset),
):
    """Email a reset link; the response does not reveal whether the account exists"""
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if user and not user.is_banned:
        token = generate_timed_token({"user_id": user.id}, salt=PASSWORD_RESET_SALT)
        try:
            await send_password_reset_email(user.email, token)
            logger.info(f"📧 Password reset link sent to {user.email}")
        except (EmailNotConfigured, RuntimeError) as e:
            logger.error(f"❌ Password reset email failed for {user.email}: {e}")

    return {"message": "If an account exists for that email, a reset link has been sent"}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_password_reset),
):
    payload = verify_timed_token(data.token, max_age=PASSWORD_RESET_MAX_AGE, salt=PASSWORD_RESET_SALT)
    if not payload or "user_id" not in payload:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")

    user = db.query(User).filter(User.id == payload["user_id"]).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset link")

    _require_strong_password(data.new_password)

    user.hashed_password = hash_password(data.new_password)
    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()

    log_user_activity(db, user.id, "PASSWORD_RESET", ip_address=get_client_ip(request))
    logger.info(f"✅ Password reset for {user.email}")
    return {"message": "Password has been reset"}
