# swim_makeup/background_tasks/expiry_tasks.py
"""
Background tasks for waitlist expiry.

run_expiry_sweep() is scheduled every EXPIRY_SWEEP_INTERVAL_MINUTES:
- closes the waitlist of every lesson starting within the close window
  (WAITING -> EXPIRED, "unable to accommodate" email)
- expires absence notices whose makeup deadline has passed

close_waitlist() is the same transition for one slot, triggered by an admin.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import AbsenceStatus, RequestStatus
from swim_makeup.core.config import settings
from swim_makeup.core.errors import NotFound, WaitlistCloseTooEarly
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import absence_notice, class_slot, makeup_request
from swim_makeup.db.session import SessionLocal
from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.utils.clock import close_window_opens_at, school_now
from swim_makeup.utils.makeup_notifications import (
    UNABLE_TO_ACCOMMODATE,
    MakeupNotification,
    Notifier,
    build_notification,
    dispatch_notifications,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    slots_closed: int = 0
    slots_skipped: int = 0
    slots_failed: int = 0
    requests_expired: int = 0
    notices_expired: int = 0
    notifications_sent: int = 0


def _expire_requests(
    db: Session,
    slot: ClassSlot,
    requests: List[MakeupRequest],
    now: datetime,
) -> List[Optional[MakeupNotification]]:
    """
    WAITING -> EXPIRED for each request, inside the caller's transaction.

    A linked absence notice returns to ABSENT_LOGGED while its makeup
    deadline is still ahead, otherwise it expires with the request.
    """
    notifications: List[Optional[MakeupNotification]] = []

    for request in requests:
        won = makeup_request.transition(
            db,
            request_id=request.id,
            from_status=RequestStatus.WAITING,
            to_status=RequestStatus.EXPIRED,
            closed_at=now,
        )
        if not won:
            # Promoted or expired by someone else since it was selected
            continue

        if request.absence_notice_id:
            notice = absence_notice.get(db, request.absence_notice_id)
            if notice:
                next_status = (
                    AbsenceStatus.EXPIRED if now > notice.makeup_deadline else AbsenceStatus.ABSENT_LOGGED
                )
                absence_notice.set_status(db, notice_id=notice.id, status=next_status, makeup_slot_id=None)

        notifications.append(build_notification(UNABLE_TO_ACCOMMODATE, request, slot))

    return notifications


def _close_slot_locked(
    db: Session,
    slot: ClassSlot,
    requests: List[MakeupRequest],
    now: datetime,
) -> List[Optional[MakeupNotification]]:
    notifications = _expire_requests(db, slot, requests, now)
    # Recount rather than zero: a join that slipped in after selection stays counted
    class_slot.recount_waitlist(db, slot.id)
    db.commit()
    return notifications


def expire_stale_absences(db: Session, now: datetime) -> int:
    """Force every still-open absence past its makeup deadline to EXPIRED."""
    notices = absence_notice.get_past_deadline(db, now=now)
    try:
        for notice in notices:
            absence_notice.set_status(
                db, notice_id=notice.id, status=AbsenceStatus.EXPIRED, makeup_slot_id=None
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if notices:
        logger.info(f"Expired {len(notices)} absence notice(s) past their makeup deadline")
    return len(notices)


def sweep_expired_waitlists(
    db: Session,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> SweepResult:
    """
    Close waitlists of imminent lessons and expire stale absences.

    Selects WAITING requests whose lesson starts no later than
    now + WAITLIST_CLOSE_LEAD_MINUTES (lessons that already started are
    included), groups them by slot and closes each slot in its own
    transaction. A slot that fails, including one whose lock cannot be
    taken, is counted in slots_failed and left for the next run; the other
    slots are still closed, their emails still sent and stale absences still
    expired. Running it twice in a row changes nothing the second time.
    """
    now = now or school_now()
    cutoff = now + timedelta(minutes=settings.WAITLIST_CLOSE_LEAD_MINUTES)
    result = SweepResult()

    waiting = makeup_request.get_waiting_starting_before(db, until=cutoff)
    groups: Dict[str, List[MakeupRequest]] = OrderedDict()
    for request in waiting:
        groups.setdefault(request.to_slot_id, []).append(request)

    notifications: List[Optional[MakeupNotification]] = []

    try:
        for slot_id, requests in groups.items():
            try:
                with slot_lock(slot_id):
                    slot = class_slot.get_for_update(db, slot_id)
                    # Re-check against the slot itself; its lesson may have moved
                    if slot is None or now < close_window_opens_at(slot.lesson_start_at):
                        db.rollback()
                        result.slots_skipped += 1
                        continue

                    closed = _close_slot_locked(db, slot, requests, now)
            except Exception as e:
                db.rollback()
                result.slots_failed += 1
                logger.error(f"Failed to close waitlist for slot {slot_id}: {e}", exc_info=True)
                continue

            result.slots_closed += 1
            result.requests_expired += len(closed)
            notifications.extend(closed)
            logger.info(f"Closed waitlist for slot {slot_id} ({len(closed)} request(s) expired)")
    finally:
        result.notifications_sent = dispatch_notifications(notifications, notifier)

    result.notices_expired = expire_stale_absences(db, now)

    return result


def close_waitlist(
    db: Session,
    slot_id: str,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> int:
    """
    Admin action: expire every WAITING request for one slot right now.

    Only allowed once the lesson is inside the close window.

    Returns:
        Number of requests expired

    Raises:
        NotFound: If the slot does not exist
        WaitlistCloseTooEarly: If the lesson is further away than the window
    """
    now = now or school_now()

    with slot_lock(slot_id):
        try:
            slot = class_slot.get_for_update(db, slot_id)
            if slot is None:
                raise NotFound(f"Slot {slot_id} not found", reason="slot_not_found")

            opens_at = close_window_opens_at(slot.lesson_start_at)
            if now < opens_at:
                raise WaitlistCloseTooEarly(
                    f"The waitlist can only be closed from {opens_at.strftime('%Y-%m-%d %H:%M')}"
                )

            requests = makeup_request.get_waiting_for_slot(db, slot_id=slot_id)
            notifications = _close_slot_locked(db, slot, requests, now)
        except Exception:
            db.rollback()
            raise

    dispatch_notifications(notifications, notifier)
    logger.info(f"Admin closed waitlist for slot {slot_id} ({len(notifications)} request(s) expired)")
    return len(notifications)


def run_expiry_sweep():
    """
    Background task entry point. Owns its database session.

    Returns the SweepResult, or None if the sweep failed.
    """
    db = SessionLocal()
    try:
        result = sweep_expired_waitlists(db)
        if result.requests_expired or result.notices_expired:
            logger.info(
                f"Expiry sweep: {result.slots_closed} slot(s) closed, "
                f"{result.requests_expired} request(s) and {result.notices_expired} absence(s) expired"
            )
        return result

    except Exception as e:
        logger.error(f"Error running expiry sweep: {e}", exc_info=True)
        db.rollback()
        return None

    finally:
        db.close()


# For testing/manual execution
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Running expiry sweep...")
    print(run_expiry_sweep())
