# swim_makeup/api/v1/endpoints/admin.py
"""
Admin endpoints for lesson slots, capacity, waitlists and school settings.

All routes require the X-Internal-Api-Key header.
"""
import logging
from collections import OrderedDict
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from swim_makeup.api import deps
from swim_makeup.background_tasks.expiry_tasks import close_waitlist
from swim_makeup.constants.makeup import RequestStatus
from swim_makeup.core.errors import NotFound
from swim_makeup.crud import class_slot, global_settings_crud, holiday, makeup_request
from swim_makeup.scheduler import get_scheduler_status
from swim_makeup.schemas.global_settings import GlobalSettingsOut, GlobalSettingsUpdate
from swim_makeup.schemas.holiday import Holiday, HolidayCreate
from swim_makeup.schemas.makeup_request import CloseWaitlistResponse, MakeupRequestOut, WaitingGroup
from swim_makeup.schemas.slot import Slot, SlotCapacityUpdate, SlotCreate, SlotUpdate
from swim_makeup.utils.makeup_notifications import Notifier
from swim_makeup.utils.slot_capacity import adjust_capacity

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(deps.get_internal_api_key)],
)
logger = logging.getLogger(__name__)


# ==================== Slots ====================

@router.get("/slots", response_model=List[Slot])
def list_slots(db: Session = Depends(deps.get_db)):
    return class_slot.get_multi_ordered(db)


@router.post("/slots", response_model=Slot, status_code=status.HTTP_201_CREATED)
def create_slot(slot_in: SlotCreate, db: Session = Depends(deps.get_db)):
    slot = class_slot.create_slot(db, obj_in=slot_in)
    logger.info(f"Slot {slot.id} created")
    return slot


@router.patch("/slots/{slot_id}", response_model=Slot)
def update_slot(slot_id: str, slot_in: SlotUpdate, db: Session = Depends(deps.get_db)):
    slot = class_slot.get(db, slot_id)
    if not slot:
        raise NotFound(f"Slot {slot_id} not found", reason="slot_not_found")
    return class_slot.update_slot(db, db_obj=slot, obj_in=slot_in)


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(slot_id: str, db: Session = Depends(deps.get_db)):
    if not class_slot.delete_slot(db, slot_id=slot_id):
        raise NotFound(f"Slot {slot_id} not found", reason="slot_not_found")
    logger.info(f"Slot {slot_id} deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/slots/{slot_id}/capacity", response_model=Slot)
def update_slot_capacity(
    slot_id: str,
    capacity_in: SlotCapacityUpdate,
    db: Session = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
):
    """
    Edit makeup_allowed, makeup_used or capacity_current. If a place opens
    up, waiting requests are confirmed (oldest first) before this returns.
    """
    return adjust_capacity(db, slot_id, capacity_in, notifier=notifier)


@router.post("/slots/{slot_id}/close-waitlist", response_model=CloseWaitlistResponse)
def close_slot_waitlist(
    slot_id: str,
    db: Session = Depends(deps.get_db),
    notifier: Notifier = Depends(deps.get_notifier),
):
    """
    Expire every waiting request for a lesson now and send the
    "unable to accommodate" emails. Only allowed close to the lesson start.
    """
    expired = close_waitlist(db, slot_id, notifier=notifier)
    return CloseWaitlistResponse(
        slot_id=slot_id,
        expired_count=expired,
        message=f"Waitlist closed ({expired} request(s) expired)",
    )


# ==================== Requests ====================

@router.get("/requests/confirmed", response_model=List[MakeupRequestOut])
def list_confirmed_requests(db: Session = Depends(deps.get_db)):
    return makeup_request.get_all_by_status(db, status=RequestStatus.CONFIRMED)


@router.get("/requests/waiting", response_model=List[WaitingGroup])
def list_waiting_requests(db: Session = Depends(deps.get_db)):
    """Waiting requests grouped by lesson, each group in queue order."""
    waiting = makeup_request.get_all_by_status(db, status=RequestStatus.WAITING)

    groups = OrderedDict()
    for request in waiting:
        groups.setdefault(request.to_slot_id, []).append(request)

    return [
        WaitingGroup(
            slot_id=slot_id,
            slot=Slot.model_validate(requests[0].slot),
            requests=[MakeupRequestOut.model_validate(r) for r in requests],
        )
        for slot_id, requests in groups.items()
    ]


# ==================== Settings ====================

@router.get("/settings", response_model=GlobalSettingsOut)
def get_settings(db: Session = Depends(deps.get_db)):
    return global_settings_crud.get_or_create(db)


@router.put("/settings", response_model=GlobalSettingsOut)
def update_settings(settings_in: GlobalSettingsUpdate, db: Session = Depends(deps.get_db)):
    row = global_settings_crud.update(db, obj_in=settings_in)
    logger.info(f"Settings updated: window={row.makeup_window_days}d cutoff={row.cutoff_time}")
    return row


# ==================== Holidays ====================

@router.get("/holidays", response_model=List[Holiday])
def list_holidays(db: Session = Depends(deps.get_db)):
    return holiday.get_all_ordered(db)


@router.post("/holidays", response_model=Holiday, status_code=status.HTTP_201_CREATED)
def create_holiday(holiday_in: HolidayCreate, db: Session = Depends(deps.get_db)):
    return holiday.create(db, obj_in=holiday_in)


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(holiday_id: str, db: Session = Depends(deps.get_db)):
    if not holiday.remove(db, id=holiday_id):
        raise NotFound(f"Holiday {holiday_id} not found", reason="holiday_not_found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==================== Scheduler ====================

@router.get("/scheduler")
def scheduler_status():
    return get_scheduler_status()
