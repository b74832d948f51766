# swim_makeup/utils/waitlist_promotion.py
"""
Waitlist promotion: confirms waiting requests in FIFO order while a slot has
makeup capacity left.

This is the core mechanism behind every capacity-increasing event: an admin
raising the allowance, a parent declining a confirmed booking, or an absence
releasing a seat.
"""
import logging
import secrets
from typing import List, Optional

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import AbsenceStatus, RequestStatus
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import absence_notice, class_slot, makeup_request
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.utils.clock import school_now
from swim_makeup.utils.makeup_notifications import (
    CONFIRMED,
    MakeupNotification,
    Notifier,
    build_notification,
    dispatch_notifications,
)

logger = logging.getLogger(__name__)


def generate_decline_token() -> str:
    """Unguessable capability for the emailed decline link."""
    return secrets.token_urlsafe(32)


def promote_waitlist(
    db: Session,
    slot_id: str,
    notifier: Optional[Notifier] = None,
) -> List[MakeupRequest]:
    """
    Promote the longest-waiting requests for a slot until capacity or the
    waitlist runs out.

    Holds the slot lock for the whole loop, so concurrent triggers for the
    same slot are serialised and promote in creation order. Confirmation
    notifications are sent after the lock is released, including those for
    promotions committed before a later iteration failed; a failed send is
    logged and never undoes a confirmation.

    Returns:
        The promoted requests, oldest first.
    """
    promoted: List[MakeupRequest] = []
    notifications: List[Optional[MakeupNotification]] = []
    try:
        with slot_lock(slot_id):
            promote_waitlist_locked(db, slot_id, promoted, notifications)
    finally:
        dispatch_notifications(notifications, notifier)

    if promoted:
        logger.info(f"Promoted {len(promoted)} waitlisted request(s) for slot {slot_id}")
    return promoted


def promote_waitlist_locked(
    db: Session,
    slot_id: str,
    promoted: List[MakeupRequest],
    notifications: List[Optional[MakeupNotification]],
) -> None:
    """
    Promotion loop for callers already holding ``slot_lock(slot_id)``.

    Capacity released by a decline, an admin edit or an absence is handed to
    waiters before the caller lets go of the lock, so a direct booking can
    never slip in between. Each committed promotion is appended to
    `promoted` and its notification to `notifications` straight after the
    commit; the caller dispatches them even when a later iteration raises.

    One iteration per promotion:

    1. reload the slot (row-locked), stop if it is gone
    2. stop when makeup_allowed - makeup_used < 1
    3. take the oldest WAITING request, stop if there is none
    4. WAITING -> CONFIRMED with a fresh decline token, makeup_used += 1,
       waitlist_count -= 1 and the linked notice -> MAKEUP_CONFIRMED, all in
       one commit

    Termination: every committed iteration lowers both the remaining capacity
    and the number of WAITING rows by one. An iteration whose compare-and-set
    loses (another worker already moved that request) commits nothing, but
    the request it lost is no longer WAITING, so the waiting set still shrank.
    Every iteration that gets past the capacity check therefore removes one
    WAITING row, so the loop is bounded by the rows waiting when it starts
    and at most min(remaining, waiting) promotions happen.
    """
    max_iterations = makeup_request.count_by_status(db, slot_id=slot_id, status=RequestStatus.WAITING)

    for _ in range(max_iterations):
        slot = class_slot.get_for_update(db, slot_id)
        if slot is None:
            logger.info(f"Slot {slot_id} no longer exists, nothing to promote")
            db.rollback()
            break

        remaining = slot.makeup_allowed - slot.makeup_used
        if remaining < 1:
            db.rollback()
            break

        request = makeup_request.get_oldest_waiting(db, slot_id=slot_id)
        if request is None:
            db.rollback()
            break

        decline_token = generate_decline_token()
        try:
            won = makeup_request.transition(
                db,
                request_id=request.id,
                from_status=RequestStatus.WAITING,
                to_status=RequestStatus.CONFIRMED,
                decline_token=decline_token,
                confirmed_at=school_now(),
            )
            if not won:
                logger.warning(
                    f"Request {request.id} left WAITING before it could be promoted; retrying slot {slot_id}"
                )
                db.rollback()
                continue

            class_slot.increment_makeup_used(db, slot_id)
            if slot.waitlist_count > 0:
                class_slot.decrement_waitlist_count(db, slot_id)
            else:
                drift = class_slot.recount_waitlist(db, slot_id)
                logger.warning(f"waitlist_count for slot {slot_id} had drifted; recounted to {drift}")

            if request.absence_notice_id:
                absence_notice.set_status(
                    db,
                    notice_id=request.absence_notice_id,
                    status=AbsenceStatus.MAKEUP_CONFIRMED,
                    makeup_slot_id=slot_id,
                )

            notification = build_notification(CONFIRMED, request, slot, decline_token=decline_token)
            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"Failed to promote request {request.id} for slot {slot_id}", exc_info=True)
            raise

        promoted.append(request)
        notifications.append(notification)
        db.refresh(request)
        logger.info(f"Confirmed waitlisted request {request.id} for slot {slot_id}")
