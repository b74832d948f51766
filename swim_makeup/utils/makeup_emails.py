# swim_makeup/utils/makeup_emails.py
"""
Email templates for makeup booking notifications.

Sends emails for:
- Waitlist promotion (booking confirmed, with a decline link)
- Waitlist closed before the lesson (unable to accommodate)
"""

import html
import logging
from urllib.parse import urlencode

from swim_makeup.core.config import settings
from swim_makeup.core.email import send_email
from swim_makeup.utils.makeup_notifications import MakeupNotification

logger = logging.getLogger(__name__)

BAND_LABELS = {
    "BEGINNER": "Beginner",
    "INTERMEDIATE": "Intermediate",
    "ADVANCED": "Advanced",
}

_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }
        .container {
            background-color: #ffffff;
            border-radius: 12px;
            padding: 32px;
        }
        .header {
            text-align: center;
            border-bottom: 2px solid #0066cc;
            padding-bottom: 20px;
            margin-bottom: 24px;
        }
        .info-box {
            background-color: #f0f7ff;
            border-left: 4px solid #0066cc;
            padding: 16px;
            margin: 20px 0;
            border-radius: 4px;
        }
        .button {
            display: inline-block;
            padding: 12px 24px;
            background-color: #dc2626;
            color: #ffffff;
            text-decoration: none;
            border-radius: 6px;
        }
        .footer {
            text-align: center;
            color: #888;
            font-size: 12px;
            margin-top: 20px;
        }
"""


def build_decline_url(decline_token: str) -> str:
    query = urlencode({"token": decline_token})
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/v1/makeup/decline?{query}"


def _lesson_details(notification: MakeupNotification) -> str:
    band = BAND_LABELS.get(notification.class_band, notification.class_band)
    return f"""
            <div class="info-box">
                <p><strong>Course:</strong> {html.escape(notification.course_label)}</p>
                <p><strong>Date:</strong> {notification.lesson_date.strftime('%A %d %B %Y')}</p>
                <p><strong>Start time:</strong> {notification.start_time}</p>
                <p><strong>Class band:</strong> {band}</p>
            </div>"""


def _wrap(title: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{title}</h1>
        </div>
        {body}
        <div class="footer">
            <p>This email was sent by {html.escape(settings.RESEND_FROM_NAME)} makeup booking.</p>
        </div>
    </div>
</body>
</html>
"""


def render_confirmation_email(notification: MakeupNotification) -> str:
    decline_html = ""
    if notification.decline_token:
        decline_url = build_decline_url(notification.decline_token)
        decline_html = f"""
        <p>If {html.escape(notification.child_name)} can no longer attend, please give the
        place back so the next family on the waitlist can have it:</p>
        <p style="text-align: center;"><a class="button" href="{decline_url}">Decline this makeup lesson</a></p>"""

    body = f"""
        <p>Good news! A place opened up and the makeup lesson for
        <strong>{html.escape(notification.child_name)}</strong> is now confirmed.</p>
        {_lesson_details(notification)}
        {decline_html}"""
    return _wrap("Makeup lesson confirmed", body)


def render_unable_to_accommodate_email(notification: MakeupNotification) -> str:
    body = f"""
        <p>We're sorry. No place became available for
        <strong>{html.escape(notification.child_name)}</strong> before the lesson below,
        so the waitlist has now closed.</p>
        {_lesson_details(notification)}
        <p>You are welcome to search for another makeup lesson.</p>"""
    return _wrap("Waitlist closed", body)


def send_confirmation_email(notification: MakeupNotification) -> dict:
    """Send the 'promoted from waitlist' email. Provider errors propagate."""
    return send_email(
        notification.to_email,
        f"Makeup lesson confirmed: {notification.course_label} on {notification.lesson_date.isoformat()}",
        render_confirmation_email(notification),
    )


def send_unable_to_accommodate_email(notification: MakeupNotification) -> dict:
    """Send the 'waitlist closed' email. Provider errors propagate."""
    return send_email(
        notification.to_email,
        f"Waitlist closed: {notification.course_label} on {notification.lesson_date.isoformat()}",
        render_unable_to_accommodate_email(notification),
    )
