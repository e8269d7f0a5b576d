"""
MJML Email Templates
All email templates using MJML for responsive, cross-client compatibility
"""

import html
from typing import Optional

# Portal theme colors - Navy/Gold color scheme
THEME = {
    "primary": "#1e3a5f",
    "primary_light": "#e8eef6",
    "accent": "#c9a227",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}

BRAND_NAME = "MG Consulting"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="12px 0" font-size="16px">
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
          <mj-all font-family="Arial, Helvetica, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="20px" font-weight="700" color="#ffffff">
              {BRAND_NAME}
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="40px 40px 24px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}">
              {BRAND_NAME} client portal
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def email_verification_template(user_name: Optional[str], otp: str) -> str:
    """Signup verification code"""
    greeting = f"Hi {html.escape(user_name)}," if user_name else "Hi,"
    content = f"""
    <mj-text>{greeting} Thanks for registering. Please verify your email to complete your account setup.</mj-text>
    <mj-text>Enter this verification code in the portal. It expires in 1 hour.</mj-text>
    <mj-text align="center" font-size="32px" font-weight="700" letter-spacing="8px"
      font-family="'Courier New', monospace" color="{THEME['text_primary']}"
      container-background-color="{THEME['primary_light']}" padding="24px 0">
      {otp}
    </mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you didn't request this, you can ignore this message.
    </mj-text>
    """
    return get_base_template(
        title="Verify your email",
        preview_text=f"Your verification code is {otp}",
        content_sections=content,
    )


def password_reset_template(reset_link: str) -> str:
    content = """
    <mj-text>We received a request to reset your password.</mj-text>
    <mj-text>Use the button below to set a new password. This link expires in 1 hour.</mj-text>
    <mj-text color="#64748b" font-size="14px">If you didn't request this, you can ignore this email.</mj-text>
    """
    return get_base_template(
        title="Password Reset",
        preview_text="Reset your portal password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Reset your password",
    )


def support_ticket_template(
    requester_name: str, requester_email: str, subject: str, priority: str, details: str
) -> str:
    """Internal notification for a new support ticket. Every field is HTML-escaped."""
    safe_details = html.escape(details).replace("\n", "<br/>")
    content = f"""
    <mj-text><strong>From:</strong> {html.escape(requester_name)} &lt;{html.escape(requester_email)}&gt;</mj-text>
    <mj-text><strong>Subject:</strong> {html.escape(subject)}</mj-text>
    <mj-text><strong>Priority:</strong> {html.escape(priority)}</mj-text>
    <mj-divider border-color="{THEME['border']}" border-width="1px" />
    <mj-text>{safe_details}</mj-text>
    """
    return get_base_template(
        title="New support ticket",
        preview_text=f"[{html.escape(priority)}] {html.escape(subject)}",
        content_sections=content,
    )
