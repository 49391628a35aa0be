import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth import get_client_ip, get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    MessageResponse,
    NotificationPreferences,
    PasswordChange,
    UserResponse,
    UserUpdate,
)
from ..security_utils import check_password_strength, hash_password, verify_password
from ..services.audit_service import log_user_activity
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _check_sms_phone(user: User):
    if user.sms_notifications_enabled and not user.phone_number:
        raise HTTPException(status_code=400, detail="Add a phone number before enabling SMS notifications")


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update contact details, address and notification preferences"""
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, sanitize_string(value) if isinstance(value, str) else value)

    _check_sms_phone(current_user)
    db.commit()
    db.refresh(current_user)
    logger.info(f"✅ Updated profile for user {current_user.id}")
    return current_user


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    data: PasswordChange,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ip = get_client_ip(request)
    if not verify_password(data.current_password, current_user.hashed_password):
        log_user_activity(
            db, current_user.id, "PASSWORD_CHANGE", "FAILURE", ip, error_message="Wrong current password"
        )
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    strength = check_password_strength(data.new_password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )

    current_user.hashed_password = hash_password(data.new_password)
    db.commit()
    log_user_activity(db, current_user.id, "PASSWORD_CHANGE", ip_address=ip)
    return {"message": "Password updated"}


@router.get("/me/notification-preferences", response_model=NotificationPreferences)
async def get_notification_preferences(current_user: User = Depends(get_current_user)):
    return {
        "email_notifications_enabled": current_user.email_notifications_enabled,
        "sms_notifications_enabled": current_user.sms_notifications_enabled,
    }


@router.put("/me/notification-preferences", response_model=NotificationPreferences)
async def update_notification_preferences(
    data: NotificationPreferences,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    current_user.email_notifications_enabled = data.email_notifications_enabled
    current_user.sms_notifications_enabled = data.sms_notifications_enabled
    _check_sms_phone(current_user)
    db.commit()
    return data
