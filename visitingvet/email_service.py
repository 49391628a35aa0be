"""
Transactional email through Resend.

Templates are written in MJML (see email_templates) and compiled here, so every
caller hands over MJML and a subject line.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    account_banned_template,
    password_reset_template,
    welcome_email_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfigured(Exception):
    """RESEND_API_KEY is not set"""


def render_mjml(mjml_content: str) -> str:
    result = mjml_to_html(mjml_content)
    # The compiler reports problems alongside the output instead of raising
    errors = result.get("errors") if isinstance(result, dict) else getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML reported {len(errors)} issue(s): {errors}")
    return result["html"] if isinstance(result, dict) else result.html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """Render `mjml_content` and send it; returns Resend's response (contains the message id)"""
    if not RESEND_API_KEY:
        raise EmailNotConfigured("RESEND_API_KEY is not configured")

    recipients = [to] if isinstance(to, str) else list(to)
    params = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": render_mjml(mjml_content),
    }
    try:
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error(f"❌ Resend rejected '{subject}' for {recipients}: {e}")
        raise RuntimeError(f"Failed to send email: {e}") from e

    logger.info(f"📧 Sent '{subject}' to {recipients}")
    return response


async def send_welcome_email(to: str, user_name: str, role: str) -> dict:
    return await send_email(to, "Welcome to VisitingVet", welcome_email_template(user_name, role))


async def send_password_reset_email(to: str, token: str) -> dict:
    link = f"{FRONTEND_URL}/reset-password?token={token}"
    return await send_email(to, "Reset your VisitingVet password", password_reset_template(link))


async def send_account_banned_email(to: str, user_name: str, reason: str) -> dict:
    return await send_email(
        to, "Your VisitingVet account has been suspended", account_banned_template(user_name, reason)
    )
