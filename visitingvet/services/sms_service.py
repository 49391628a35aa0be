"""
Twilio SMS Service
Sends notification texts from the platform Twilio account over the REST API
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
SMS_MAX_LENGTH = 320


def is_sms_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER)


def format_sms_body(title: str, message: str) -> str:
    body = f"VisitingVet: {title} - {message}"
    if len(body) > SMS_MAX_LENGTH:
        body = body[: SMS_MAX_LENGTH - 3] + "..."
    return body


async def send_sms(to_phone: str, message_body: str) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number in E.164 format
        message_body: SMS message content

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +12025550123)"

    if not is_sms_configured():
        logger.debug("SMS skipped, Twilio credentials not configured")
        return False, "SMS service not configured"

    try:
        logger.info(f"📱 Sending SMS to Twilio API for {to_phone}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": to_phone, "From": TWILIO_FROM_NUMBER, "Body": message_body},
                timeout=10.0,
            )

        if response.status_code in (200, 201):
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent to {to_phone}, sid={message_sid}")
            return True, None

        try:
            error_message = response.json().get("message", response.text)
        except ValueError:
            error_message = response.text
        logger.error(f"❌ Twilio API error {response.status_code}: {error_message}")
        return False, f"Twilio error: {error_message}"

    except httpx.HTTPError as e:
        logger.error(f"❌ Failed to reach Twilio: {e}")
        return False, str(e)
