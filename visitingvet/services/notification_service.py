"""
Unified Notification Service
Every event stores an in-app notification and mirrors it to email and SMS
according to the recipient's preferences
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..config import EMAIL_NOTIFICATIONS_ENABLED, SMS_NOTIFICATIONS_ENABLED
from ..constants import ROLE_ADMIN
from ..email_service import send_email
from ..email_templates import notification_email_template
from ..models import Notification, User
from ..shared.validators import validate_us_phone
from .sms_service import format_sms_body, send_sms

logger = logging.getLogger(__name__)


async def notify_user(
    db: Session,
    user: User,
    title: str,
    message: str,
    notification_type: str = "general",
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    action_url: Optional[str] = None,
    email_mjml: Optional[str] = None,
) -> dict:
    """
    Store an in-app notification and deliver it by email/SMS

    Channel failures are logged and reported in the result, never raised.

    Returns:
        Dict with notification_id, email_sent, sms_sent, email_error, sms_error
    """
    result = {
        "notification_id": None,
        "email_sent": False,
        "sms_sent": False,
        "email_error": None,
        "sms_error": None,
    }

    notification = Notification(
        user_id=user.id,
        title=title,
        message=message,
        type=notification_type,
        reference_type=reference_type,
        reference_id=reference_id,
        action_url=action_url,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    result["notification_id"] = notification.id

    if EMAIL_NOTIFICATIONS_ENABLED and user.email_notifications_enabled and user.email:
        try:
            logger.info(f"📧 Sending {notification_type} email to {user.email}")
            await send_email(
                to=user.email,
                subject=title,
                mjml_content=email_mjml or notification_email_template(title, message, action_url),
            )
            result["email_sent"] = True
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ Failed to send {notification_type} email to {user.email}: {e}")

    if SMS_NOTIFICATIONS_ENABLED and user.sms_notifications_enabled and user.phone_number:
        try:
            formatted_phone = validate_us_phone(user.phone_number)
            success, error = await send_sms(formatted_phone, format_sms_body(title, message))
            if success:
                result["sms_sent"] = True
            else:
                result["sms_error"] = error
                logger.warning(f"⚠️ {notification_type} SMS not sent to {formatted_phone}: {error}")
        except ValueError as e:
            result["sms_error"] = str(e)
            logger.warning(f"⚠️ Invalid phone number for user {user.id}: {user.phone_number}")
        except Exception as e:
            result["sms_error"] = str(e)
            logger.error(f"❌ Failed to send {notification_type} SMS to user {user.id}: {e}")

    if result["email_sent"] or result["sms_sent"]:
        notification.sent_via_email = result["email_sent"]
        notification.sent_via_sms = result["sms_sent"]
        db.commit()

    return result


async def notify_admins(
    db: Session,
    title: str,
    message: str,
    notification_type: str = "admin",
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    action_url: Optional[str] = None,
) -> list[dict]:
    """Fan a notification out to every active admin"""
    admins = db.query(User).filter(User.role == ROLE_ADMIN, User.is_banned.is_(False)).all()
    results = []
    for admin in admins:
        results.append(
            await notify_user(
                db,
                admin,
                title,
                message,
                notification_type=notification_type,
                reference_type=reference_type,
                reference_id=reference_id,
                action_url=action_url,
            )
        )
    logger.info(f"📣 Notified {len(admins)} admins: {title}")
    return results
