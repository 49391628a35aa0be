"""
MJML Email Templates
Responsive templates for account, verification and booking emails
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

# Veterinary blue/green palette
THEME = {
    "primary": "#0e7490",
    "primary_dark": "#155e75",
    "primary_light": "#cffafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#dc2626",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML wrapper shared by every email"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="#ffffff" padding="0">
              VisitingVet
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you have a VisitingVet account.
              Manage email preferences in your account settings.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def notification_email_template(title: str, message: str, action_url: Optional[str] = None) -> str:
    """Generic template used for in-app notifications mirrored to email"""
    content = f"""
    <mj-text>
      {escape(message)}
    </mj-text>
    """
    cta_url = None
    if action_url:
        cta_url = action_url if action_url.startswith("http") else f"{FRONTEND_URL}{action_url}"
    return get_base_template(
        title=escape(title),
        preview_text=escape(message[:90]),
        content_sections=content,
        cta_url=cta_url,
        cta_label="View in VisitingVet" if cta_url else None,
    )


def welcome_email_template(user_name: str, role: str) -> str:
    next_step = {
        "MVSProvider": "Complete your provider profile and upload your license to get verified.",
        "Clinic": "Upload your business documents to get verified and start sending referrals.",
    }.get(role, "Add your pets and book your first home visit.")

    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your account has been created successfully.
    </mj-text>

    <mj-text>
      Hi {escape(user_name or 'there')},
    </mj-text>

    <mj-text>
      Welcome to VisitingVet. {next_step}
    </mj-text>
    """
    return get_base_template(
        title="Welcome to VisitingVet",
        preview_text="Your account is ready",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard",
        cta_label="Go to Dashboard",
    )


def password_reset_template(reset_link: str) -> str:
    content = f"""
    <mj-text>
      We received a request to reset your password. The link below is valid for one hour.
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you didn't request this, you can safely ignore this email.
    </mj-text>
    """
    return get_base_template(
        title="Reset Your Password",
        preview_text="Reset your VisitingVet password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Reset Password",
    )


def account_banned_template(user_name: str, reason: str) -> str:
    content = f"""
    <mj-text>
      Hi {escape(user_name or 'there')},
    </mj-text>

    <mj-text>
      Your VisitingVet account has been suspended by an administrator.
    </mj-text>

    <mj-text padding="16px 20px" container-background-color="#fef2f2" color="{THEME['danger']}">
      Reason: {escape(reason)}
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Reply to this email if you believe this was a mistake.
    </mj-text>
    """
    return get_base_template(
        title="Account Suspended",
        preview_text="Your account has been suspended",
        content_sections=content,
    )


def verification_result_template(user_name: str, approved: bool, reason: Optional[str] = None) -> str:
    if approved:
        body = f"""
        <mj-text>
          Hi {escape(user_name or 'there')}, your documents have been reviewed and your account is now verified.
        </mj-text>
        """
    else:
        body = f"""
        <mj-text>
          Hi {escape(user_name or 'there')}, we could not verify your account with the documents provided.
        </mj-text>

        <mj-text padding="16px 20px" container-background-color="#fef2f2">
          {escape(reason or 'No reason provided')}
        </mj-text>

        <mj-text>
          You can upload corrected documents and submit again.
        </mj-text>
        """
    return get_base_template(
        title="Verification Approved" if approved else "Verification Not Approved",
        preview_text="Your verification has been reviewed",
        content_sections=body,
        cta_url=f"{FRONTEND_URL}/verification",
        cta_label="View Verification",
    )


def appointment_email_template(
    headline: str, service_name: str, appointment_time: str, details: Optional[str] = None
) -> str:
    content = f"""
    <mj-table padding="0 0 16px 0">
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Service</td>
        <td style="padding: 6px 0; font-weight: 600;">{escape(service_name)}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">When</td>
        <td style="padding: 6px 0; font-weight: 600;">{escape(appointment_time)} UTC</td>
      </tr>
    </mj-table>
    """
    if details:
        content += f"""
    <mj-text>
      {escape(details)}
    </mj-text>
    """
    return get_base_template(
        title=escape(headline),
        preview_text=escape(headline),
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/appointments",
        cta_label="View Appointments",
    )
