"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from . import config
from .email_templates import (
    email_verification_template,
    password_reset_template,
    support_ticket_template,
)

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(Exception):
    """Raised when no email provider key is configured"""


class EmailSendError(Exception):
    """Raised when the provider rejects or fails a send"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailSendError(f"Failed to compile MJML template: {e}") from e

    # mjml_to_html returns a dict with 'html' and 'errors' keys
    if result.get("errors"):
        logger.warning(f"MJML compilation warnings: {result['errors']}")
    return result.get("html", "")


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address
        reply_to: Optional Reply-To address

    Returns:
        Send response dict
    """
    if not config.RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    resend.api_key = config.RESEND_API_KEY
    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": from_address or config.EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if reply_to:
        email_data["reply_to"] = reply_to

    try:
        logger.info(f"📧 Sending email via Resend: {subject}")
        response = resend.Emails.send(email_data)
    except Exception as e:
        logger.error(f"❌ Email send error: {e}")
        raise EmailSendError(f"Failed to send email: {e}") from e

    logger.info("✅ Email sent successfully via Resend")
    return response


# ============================================
# Pre-built emails
# ============================================


async def send_email_verification_otp(to: str, user_name: Optional[str], otp: str) -> dict:
    """Send OTP for email verification"""
    return await send_email(
        to=to,
        subject="Your verification code",
        mjml_content=email_verification_template(user_name, otp),
    )


async def send_password_reset_email(to: str, reset_link: str) -> dict:
    return await send_email(
        to=to,
        subject="Reset your password",
        mjml_content=password_reset_template(reset_link),
    )


async def send_support_ticket_email(
    requester_name: str, requester_email: str, subject: str, priority: str, details: str
) -> dict:
    """Forward a support request to the support inbox"""
    if not config.SUPPORT_TO_EMAIL:
        raise EmailNotConfiguredError("SUPPORT_TO_EMAIL not configured")
    return await send_email(
        to=config.SUPPORT_TO_EMAIL,
        subject=f"[Support][{priority}] {subject}",
        mjml_content=support_ticket_template(
            requester_name, requester_email, subject, priority, details
        ),
        reply_to=requester_email,
    )
