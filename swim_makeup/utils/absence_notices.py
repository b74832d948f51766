# swim_makeup/utils/absence_notices.py
"""
Absence notice lifecycle: logging an absence and resuming it by token.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from swim_makeup.core.config import settings
from swim_makeup.core.errors import Conflict, NotFound
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import absence_notice, class_slot, global_settings_crud, makeup_request
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.schemas.absence_notice import AbsenceCreate
from swim_makeup.schemas.slot import SlotSearchResult
from swim_makeup.utils.clock import makeup_deadline, school_now
from swim_makeup.utils.makeup_booking import search_slots
from swim_makeup.utils.makeup_notifications import MakeupNotification, Notifier, dispatch_notifications
from swim_makeup.utils.slot_capacity import promote_if_capacity_opened, remaining_makeup_slots
from swim_makeup.utils.validators import validate_band_matches_slot

logger = logging.getLogger(__name__)


@dataclass
class AbsenceResumeState:
    notice: AbsenceNotice
    active_request: Optional[MakeupRequest]
    slots: List[SlotSearchResult]


def log_absence(
    db: Session,
    obj_in: AbsenceCreate,
    notifier: Optional[Notifier] = None,
) -> AbsenceNotice:
    """
    Record that a child will miss a lesson.

    With ABSENCE_RELEASES_SEAT on, the missed lesson gains one makeup place,
    which may promote a family already waiting for it.

    Raises:
        NotFound: Unknown original slot
        ValidationFailed: Class band does not match the original slot
        Conflict: Lesson already started, or the absence was already logged
    """
    now = school_now()
    slot = class_slot.get(db, obj_in.original_slot_id)
    if not slot:
        raise NotFound("The lesson to be missed was not found", reason="slot_not_found")

    validate_band_matches_slot(obj_in.declared_class_band, slot.class_band)

    if slot.lesson_start_at <= now:
        raise Conflict("This lesson has already started", reason="lesson_started")

    if absence_notice.get_by_child_and_slot(
        db, child_name=obj_in.child_name, original_slot_id=slot.id
    ):
        raise Conflict("This absence has already been logged", reason="absence_exists")

    window_days = global_settings_crud.get_or_create(db).makeup_window_days
    deadline = makeup_deadline(slot.date, window_days)

    promoted: List[MakeupRequest] = []
    notifications: List[Optional[MakeupNotification]] = []
    try:
        with slot_lock(slot.id):
            try:
                slot = class_slot.get_for_update(db, slot.id)
                old_remaining = remaining_makeup_slots(slot)

                notice = absence_notice.add_notice(
                    db, obj_in=obj_in, absent_date=slot.date, makeup_deadline=deadline
                )
                if settings.ABSENCE_RELEASES_SEAT:
                    class_slot.increment_makeup_allowed(db, slot.id)
                    notice.makeup_allowance_delta = 1
                db.commit()
            except Exception:
                db.rollback()
                raise

            db.refresh(slot)
            new_remaining = remaining_makeup_slots(slot)
            logger.info(f"Absence {notice.id} logged for {notice.child_name} in slot {slot.id}")

            promote_if_capacity_opened(db, slot.id, old_remaining, new_remaining, promoted, notifications)
    finally:
        dispatch_notifications(notifications, notifier)

    db.refresh(notice)
    return notice


def resume_absence(db: Session, token: str) -> AbsenceResumeState:
    """Load an absence journey from its resume token."""
    notice = absence_notice.get_by_resume_token(db, token=token)
    if not notice:
        raise NotFound("Absence notice not found", reason="absence_not_found")

    active_request = makeup_request.get_active_for_notice(db, notice_id=notice.id)
    slots = search_slots(
        db,
        child_name=notice.child_name,
        class_band=notice.declared_class_band,
        absent_date=notice.absent_date,
    )
    # Only lessons the absence can still be made up in, never the missed one itself
    slots = [
        s for s in slots
        if s.lesson_start_at <= notice.makeup_deadline and s.slot_id != notice.original_slot_id
    ]
    return AbsenceResumeState(notice=notice, active_request=active_request, slots=slots)
