# swim_makeup/core/email.py
"""
Email sink using Resend for sending transactional emails.
"""
import logging

import resend
from swim_makeup.core.config import settings

logger = logging.getLogger(__name__)


def init_resend() -> bool:
    """Initialize Resend with API key. Returns False when email is disabled."""
    if not settings.RESEND_API_KEY:
        return False
    resend.api_key = settings.RESEND_API_KEY
    return True


def send_email(to_email: str, subject: str, html_content: str) -> dict:
    """
    Send one templated email.

    Provider errors are raised to the caller; the notification layer decides
    whether they matter (for makeup bookings they never do).

    Returns:
        {"success": True, "id": ...} or {"success": False, "skipped": True}
        when RESEND_API_KEY is not configured.
    """
    if not init_resend():
        logger.warning(f"Skipping email to {to_email} - RESEND_API_KEY not configured")
        return {"success": False, "skipped": True}

    params = {
        "from": f"{settings.RESEND_FROM_NAME} <noreply@{settings.RESEND_FROM_DOMAIN}>",
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }

    response = resend.Emails.send(params)
    logger.info(f"Email '{subject}' sent to {to_email}")
    return {"success": True, "id": response.get("id")}
