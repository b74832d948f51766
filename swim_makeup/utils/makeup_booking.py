# swim_makeup/utils/makeup_booking.py
"""
Parent-facing booking flow: search, immediate booking and waitlist join.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import AbsenceStatus, RequestStatus
from swim_makeup.core.errors import CapacityExhausted, Conflict, NotFound, ValidationFailed
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import absence_notice, class_slot, global_settings_crud, holiday, makeup_request
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.schemas.makeup_request import BookingCreate, MakeupRequestBase, WaitlistJoin
from swim_makeup.schemas.slot import SlotSearchResult
from swim_makeup.utils.clock import close_window_opens_at, school_now
from swim_makeup.utils.makeup_notifications import MakeupNotification, Notifier, dispatch_notifications
from swim_makeup.utils.slot_capacity import (
    availability_text,
    classify_availability,
    remaining_makeup_slots,
)
from swim_makeup.utils.validators import validate_band_matches_slot, validate_class_band
from swim_makeup.utils.waitlist_promotion import generate_decline_token, promote_waitlist_locked

logger = logging.getLogger(__name__)


def search_slots(
    db: Session,
    *,
    child_name: str,
    class_band: str,
    absent_date: date,
    now: Optional[datetime] = None,
) -> List[SlotSearchResult]:
    """
    List makeup candidates for an absence: same class band, dated within the
    makeup window either side of the absent date, not started yet and not on
    a school holiday. Each slot carries its availability classification.
    """
    class_band = validate_class_band(class_band)
    now = now or school_now()
    window_days = global_settings_crud.get_or_create(db).makeup_window_days

    date_from = absent_date - timedelta(days=window_days)
    date_to = absent_date + timedelta(days=window_days)

    slots = class_slot.get_bookable_by_band(
        db,
        class_band=class_band,
        date_from=date_from,
        date_to=date_to,
        starts_after=now,
    )
    closed_dates = holiday.get_dates_between(db, date_from=date_from, date_to=date_to)

    results = []
    for slot in slots:
        if slot.date in closed_dates:
            continue
        remaining = remaining_makeup_slots(slot)
        availability = classify_availability(remaining)
        results.append(
            SlotSearchResult(
                slot_id=slot.id,
                date=slot.date,
                start_time=slot.start_time,
                lesson_start_at=slot.lesson_start_at,
                course_label=slot.course_label,
                class_band=slot.class_band,
                availability=availability,
                status_text=availability_text(availability, remaining, slot.waitlist_count),
                remaining_slots=remaining,
                waitlist_count=slot.waitlist_count,
            )
        )

    logger.debug(f"Search for {child_name} ({class_band}, absent {absent_date}) found {len(results)} slot(s)")
    return results


def _load_target_slot(db: Session, obj_in: MakeupRequestBase, now: datetime) -> ClassSlot:
    slot = class_slot.get(db, obj_in.to_slot_id)
    if not slot:
        raise NotFound("The selected slot was not found", reason="slot_not_found")

    validate_band_matches_slot(obj_in.declared_class_band, slot.class_band)

    if slot.lesson_start_at <= now:
        raise Conflict("This lesson has already started", reason="lesson_started")
    return slot


def _resolve_notice(
    db: Session, obj_in: MakeupRequestBase, slot: ClassSlot
) -> Optional[AbsenceNotice]:
    """Find and check the absence notice a booking is made for, if any."""
    if not obj_in.resume_token:
        return None

    notice = absence_notice.get_by_resume_token(db, token=obj_in.resume_token)
    if not notice:
        raise NotFound("Absence notice not found", reason="absence_not_found")

    if notice.child_name != obj_in.child_name or notice.declared_class_band != obj_in.declared_class_band:
        raise ValidationFailed(
            "The booking details do not match the absence notice",
            reason="absence_mismatch",
        )
    if notice.status not in AbsenceStatus.bookable_values():
        raise Conflict(
            f"This absence cannot take a new makeup booking (status: {notice.status})",
            reason="absence_not_bookable",
        )
    if makeup_request.get_active_for_notice(db, notice_id=notice.id):
        raise Conflict(
            "This absence already has an active makeup request",
            reason="absence_has_active_request",
        )
    if slot.id == notice.original_slot_id:
        raise ValidationFailed(
            "A makeup cannot be booked into the lesson that is being missed",
            reason="makeup_same_as_absence",
        )
    if slot.lesson_start_at > notice.makeup_deadline:
        raise ValidationFailed(
            "The selected lesson is after the makeup deadline for this absence",
            reason="outside_makeup_window",
        )
    return notice


def _check_no_duplicate(db: Session, obj_in: MakeupRequestBase) -> None:
    existing = makeup_request.get_active_for_child(
        db, slot_id=obj_in.to_slot_id, child_name=obj_in.child_name
    )
    if existing:
        raise Conflict(
            f"{obj_in.child_name} already has a request for this slot with status: {existing.status}",
            reason="duplicate_request",
        )


def book_slot(
    db: Session,
    obj_in: BookingCreate,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> Tuple[MakeupRequest, str]:
    """
    Book a makeup lesson immediately.

    Families already waiting for the slot are served first: any free place
    goes to them before the new booking is checked against what is left.

    Returns:
        (request, decline_token) for the new CONFIRMED request

    Raises:
        NotFound, ValidationFailed, Conflict, CapacityExhausted
    """
    now = now or school_now()
    slot = _load_target_slot(db, obj_in, now)
    notice = _resolve_notice(db, obj_in, slot)
    promoted: List[MakeupRequest] = []
    notifications: List[Optional[MakeupNotification]] = []

    try:
        with slot_lock(slot.id):
            if makeup_request.count_by_status(db, slot_id=slot.id, status=RequestStatus.WAITING):
                promote_waitlist_locked(db, slot.id, promoted, notifications)

            try:
                slot = class_slot.get_for_update(db, slot.id)
                if slot is None:
                    raise NotFound("The selected slot was not found", reason="slot_not_found")

                _check_no_duplicate(db, obj_in)

                if remaining_makeup_slots(slot) < 1:
                    raise CapacityExhausted(
                        "There are no places left in this lesson. Please join the waitlist instead."
                    )

                decline_token = generate_decline_token()
                request = makeup_request.add_request(
                    db,
                    child_name=obj_in.child_name,
                    declared_class_band=obj_in.declared_class_band,
                    absent_date=obj_in.absent_date,
                    to_slot_id=slot.id,
                    to_slot_start_at=slot.lesson_start_at,
                    status=RequestStatus.CONFIRMED,
                    contact_email=obj_in.contact_email,
                    decline_token=decline_token,
                    absence_notice_id=notice.id if notice else None,
                    confirmed_at=now,
                )
                class_slot.increment_makeup_used(db, slot.id)
                if notice:
                    absence_notice.set_status(
                        db,
                        notice_id=notice.id,
                        status=AbsenceStatus.MAKEUP_CONFIRMED,
                        makeup_slot_id=slot.id,
                    )
                db.commit()
            except Exception:
                db.rollback()
                raise
    finally:
        dispatch_notifications(notifications, notifier)

    db.refresh(request)
    logger.info(f"Booked makeup request {request.id} for {request.child_name} in slot {request.to_slot_id}")
    return request, decline_token


def join_waitlist(
    db: Session,
    obj_in: WaitlistJoin,
    now: Optional[datetime] = None,
) -> MakeupRequest:
    """
    Put a child on the FIFO waitlist of a full slot.

    Raises:
        NotFound, ValidationFailed, Conflict
    """
    now = now or school_now()
    slot = _load_target_slot(db, obj_in, now)

    if now >= close_window_opens_at(slot.lesson_start_at):
        raise Conflict(
            "The waitlist for this lesson has closed",
            reason="waitlist_closed",
        )

    notice = _resolve_notice(db, obj_in, slot)

    with slot_lock(slot.id):
        try:
            slot = class_slot.get_for_update(db, slot.id)
            if slot is None:
                raise NotFound("The selected slot was not found", reason="slot_not_found")

            _check_no_duplicate(db, obj_in)

            remaining = remaining_makeup_slots(slot)
            if remaining >= 1:
                raise Conflict(
                    f"This lesson still has {remaining} place(s). Book it directly instead of joining the waitlist.",
                    reason="slot_has_capacity",
                )

            request = makeup_request.add_request(
                db,
                child_name=obj_in.child_name,
                declared_class_band=obj_in.declared_class_band,
                absent_date=obj_in.absent_date,
                to_slot_id=slot.id,
                to_slot_start_at=slot.lesson_start_at,
                status=RequestStatus.WAITING,
                contact_email=obj_in.contact_email,
                absence_notice_id=notice.id if notice else None,
            )
            class_slot.increment_waitlist_count(db, slot.id)
            if notice:
                absence_notice.set_status(
                    db,
                    notice_id=notice.id,
                    status=AbsenceStatus.WAITING,
                    makeup_slot_id=slot.id,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(request)
    logger.info(f"Request {request.id} for {request.child_name} joined the waitlist of slot {request.to_slot_id}")
    return request
