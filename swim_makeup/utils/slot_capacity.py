# swim_makeup/utils/slot_capacity.py
"""
Slot capacity utilities: availability classification and admin counter edits.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import RequestStatus, SlotAvailability
from swim_makeup.core.errors import NotFound
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import class_slot, makeup_request
from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.schemas.slot import SlotCapacityUpdate
from swim_makeup.utils.makeup_notifications import MakeupNotification, Notifier, dispatch_notifications
from swim_makeup.utils.waitlist_promotion import promote_waitlist_locked

logger = logging.getLogger(__name__)


def remaining_makeup_slots(slot: ClassSlot) -> int:
    """makeup_allowed - makeup_used. May be negative after an admin edit."""
    return slot.makeup_allowed - slot.makeup_used


def classify_availability(remaining: int) -> str:
    """
    Listing status for a slot:
    - 2 or more left → open
    - exactly 1 left → last-slot
    - 0 or less → full (waitlist only)
    """
    if remaining >= 2:
        return SlotAvailability.OPEN
    if remaining == 1:
        return SlotAvailability.LAST_SLOT
    return SlotAvailability.FULL


def availability_text(availability: str, remaining: int, waitlist_count: int) -> str:
    if availability == SlotAvailability.OPEN:
        return f"Makeup available ({remaining} places left)"
    if availability == SlotAvailability.LAST_SLOT:
        return "Last place available"
    return f"Full - join the waitlist ({waitlist_count} waiting)"


def adjust_capacity(
    db: Session,
    slot_id: str,
    update: SlotCapacityUpdate,
    notifier: Optional[Notifier] = None,
) -> ClassSlot:
    """
    Apply an admin edit to a slot's counters and let the waitlist catch up.

    Only the fields present in `update` change. Values are applied as given:
    lowering makeup_allowed below makeup_used is accepted and simply leaves
    the slot with no capacity until it is raised again.

    If the slot ends up with at least one free place while requests are
    waiting (which includes every move from "no capacity" to "capacity"),
    the promotion engine runs under the same slot lock before this returns.

    Raises:
        NotFound: If the slot does not exist
    """
    fields = update.provided_fields()
    promoted: List[MakeupRequest] = []
    notifications: List[Optional[MakeupNotification]] = []

    try:
        with slot_lock(slot_id):
            slot = class_slot.get_for_update(db, slot_id)
            if slot is None:
                db.rollback()
                raise NotFound(f"Slot {slot_id} not found", reason="slot_not_found")

            old_remaining = remaining_makeup_slots(slot)
            try:
                for field, value in fields.items():
                    setattr(slot, field, value)
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(slot)
            new_remaining = remaining_makeup_slots(slot)

            logger.info(
                f"Capacity of slot {slot_id} updated ({', '.join(f'{k}={v}' for k, v in fields.items()) or 'no changes'}); "
                f"remaining {old_remaining} -> {new_remaining}"
            )

            if promote_if_capacity_opened(db, slot_id, old_remaining, new_remaining, promoted, notifications):
                db.refresh(slot)
    finally:
        dispatch_notifications(notifications, notifier)

    return slot


def promote_if_capacity_opened(
    db: Session,
    slot_id: str,
    old_remaining: int,
    new_remaining: int,
    promoted: List[MakeupRequest],
    notifications: List[Optional[MakeupNotification]],
) -> bool:
    """
    Run the promotion loop when a capacity change left room for waiters.
    The caller holds ``slot_lock(slot_id)`` and dispatches `notifications`.
    """
    if new_remaining < 1:
        return False
    has_waiters = makeup_request.count_by_status(
        db, slot_id=slot_id, status=RequestStatus.WAITING
    )
    if old_remaining <= 0 or has_waiters:
        promote_waitlist_locked(db, slot_id, promoted, notifications)
        return True
    return False
