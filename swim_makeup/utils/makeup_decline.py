# swim_makeup/utils/makeup_decline.py
"""
Voluntary decline of a confirmed makeup booking via the emailed link.

Declining frees one place and immediately hands it to the next family on
the waitlist.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import AbsenceStatus, RequestStatus
from swim_makeup.core.errors import InvalidStatusTransition, NotFound, ValidationFailed
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import absence_notice, class_slot, makeup_request
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.utils.clock import school_now
from swim_makeup.utils.makeup_notifications import MakeupNotification, Notifier, dispatch_notifications
from swim_makeup.utils.waitlist_promotion import promote_waitlist_locked

logger = logging.getLogger(__name__)


@dataclass
class DeclineResult:
    request: MakeupRequest
    promoted: List[MakeupRequest] = field(default_factory=list)


def decline_booking(
    db: Session,
    token: str,
    notifier: Optional[Notifier] = None,
) -> DeclineResult:
    """
    Decline the CONFIRMED request identified by its decline token.

    Raises:
        ValidationFailed: If no token was supplied
        NotFound: If the token matches no request
        InvalidStatusTransition: If the request is not CONFIRMED any more
    """
    if not token:
        raise ValidationFailed("A decline token is required", reason="missing_token")

    request = makeup_request.get_by_decline_token(db, token=token)
    if not request:
        raise NotFound("No booking matches this link", reason="decline_token_not_found")

    slot_id = request.to_slot_id
    promoted: List[MakeupRequest] = []
    notifications: List[Optional[MakeupNotification]] = []

    try:
        with slot_lock(slot_id):
            try:
                slot = class_slot.get_for_update(db, slot_id)
                db.refresh(request)
                if request.status != RequestStatus.CONFIRMED:
                    raise InvalidStatusTransition(
                        f"This booking has already been processed (status: {request.status})",
                        reason="already_processed",
                    )

                won = makeup_request.transition(
                    db,
                    request_id=request.id,
                    from_status=RequestStatus.CONFIRMED,
                    to_status=RequestStatus.DECLINED,
                    closed_at=school_now(),
                )
                if not won:
                    raise InvalidStatusTransition(
                        "This booking has already been processed",
                        reason="already_processed",
                    )

                if slot is not None and slot.makeup_used > 0:
                    class_slot.decrement_makeup_used(db, slot_id)
                else:
                    logger.warning(f"Slot {slot_id} had no used makeup places to release on decline")

                if request.absence_notice_id:
                    absence_notice.set_status(
                        db,
                        notice_id=request.absence_notice_id,
                        status=AbsenceStatus.CANCELLED,
                        makeup_slot_id=None,
                    )
                db.commit()
            except Exception:
                db.rollback()
                raise

            db.refresh(request)
            logger.info(f"Request {request.id} declined; releasing one place in slot {slot_id}")

            # The freed place goes to the next waiter before the lock is released
            promote_waitlist_locked(db, slot_id, promoted, notifications)
    finally:
        dispatch_notifications(notifications, notifier)

    return DeclineResult(request=request, promoted=promoted)
