# swim_makeup/utils/makeup_notifications.py
"""
Notification events for makeup bookings.

Core operations collect MakeupNotification objects while their transaction is
open and hand them to dispatch_notifications() only after the commit. A
failed send is logged and dropped: the booking or expiry it describes is
already durable.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol

from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.makeup_request import MakeupRequest

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
UNABLE_TO_ACCOMMODATE = "unable_to_accommodate"


@dataclass(frozen=True)
class MakeupNotification:
    kind: str
    request_id: str
    to_email: str
    child_name: str
    course_label: str
    lesson_date: date
    start_time: str
    class_band: str
    decline_token: Optional[str] = None


class Notifier(Protocol):
    def send(self, notification: MakeupNotification) -> None:
        ...


class EmailNotifier:
    """Delivers notifications as Resend emails."""

    def send(self, notification: MakeupNotification) -> None:
        from swim_makeup.utils import makeup_emails

        if notification.kind == CONFIRMED:
            makeup_emails.send_confirmation_email(notification)
        elif notification.kind == UNABLE_TO_ACCOMMODATE:
            makeup_emails.send_unable_to_accommodate_email(notification)
        else:
            raise ValueError(f"Unknown notification kind: {notification.kind}")


default_notifier = EmailNotifier()


def build_notification(
    kind: str,
    request: MakeupRequest,
    slot: ClassSlot,
    decline_token: Optional[str] = None,
) -> Optional[MakeupNotification]:
    """Returns None when the request has no contact email."""
    if not request.contact_email:
        return None
    return MakeupNotification(
        kind=kind,
        request_id=request.id,
        to_email=request.contact_email,
        child_name=request.child_name,
        course_label=slot.course_label,
        lesson_date=slot.date,
        start_time=slot.start_time,
        class_band=slot.class_band,
        decline_token=decline_token,
    )


def dispatch_notifications(
    notifications: Iterable[Optional[MakeupNotification]],
    notifier: Optional[Notifier] = None,
) -> int:
    """
    Fire-and-forget delivery. Returns how many notifications were handed off
    without raising.
    """
    notifier = notifier or default_notifier
    delivered = 0

    for notification in notifications:
        if notification is None:
            continue
        try:
            notifier.send(notification)
            delivered += 1
        except Exception as e:
            logger.error(
                f"Failed to send {notification.kind} notification for request "
                f"{notification.request_id} to {notification.to_email}: {e}",
                exc_info=True,
            )

    return delivered
