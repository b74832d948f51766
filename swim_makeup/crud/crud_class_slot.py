# swim_makeup/crud/crud_class_slot.py
from datetime import date
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import RequestStatus
from swim_makeup.core.errors import Conflict
from swim_makeup.crud.base import CRUDBase
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.models.class_slot import ClassSlot
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.schemas.slot import SlotCreate, SlotUpdate
from swim_makeup.utils.clock import lesson_start


def build_slot_id(lesson_date: date, start_time: str, class_band: str) -> str:
    """Slot ids are derived so the same lesson cannot be created twice."""
    return f"{lesson_date.isoformat()}_{start_time}_{class_band.lower()}"


class CRUDClassSlot(CRUDBase[ClassSlot, SlotCreate, SlotUpdate]):
    """
    CRUD operations for ClassSlot plus the makeup capacity ledger.

    Counter helpers issue `col = col + :delta` UPDATEs inside the caller's
    transaction and never commit; the caller commits together with the
    request rows the counters summarise.
    """

    def get_for_update(self, db: Session, slot_id: str) -> Optional[ClassSlot]:
        """Reload a slot from the database, row-locked until commit."""
        return (
            db.query(self.model)
            .filter(self.model.id == slot_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_multi_ordered(self, db: Session) -> List[ClassSlot]:
        return db.query(self.model).order_by(self.model.lesson_start_at.asc()).all()

    def get_by_date_and_band(self, db: Session, *, lesson_date: date, class_band: str) -> List[ClassSlot]:
        """Lessons of one band on one day, earliest first."""
        return (
            db.query(self.model)
            .filter(self.model.date == lesson_date, self.model.class_band == class_band)
            .order_by(self.model.lesson_start_at.asc())
            .all()
        )

    def get_bookable_by_band(
        self,
        db: Session,
        *,
        class_band: str,
        date_from: date,
        date_to: date,
        starts_after,
    ) -> List[ClassSlot]:
        """Slots of one band dated within [date_from, date_to] that have not started."""
        return (
            db.query(self.model)
            .filter(
                self.model.class_band == class_band,
                self.model.date >= date_from,
                self.model.date <= date_to,
                self.model.lesson_start_at >= starts_after,
            )
            .order_by(self.model.lesson_start_at.asc())
            .all()
        )

    def create_slot(self, db: Session, *, obj_in: SlotCreate) -> ClassSlot:
        slot_id = build_slot_id(obj_in.date, obj_in.start_time, obj_in.class_band)
        if self.get(db, slot_id):
            raise Conflict(
                "A slot with the same date, time and class band already exists",
                reason="slot_exists",
            )

        slot = ClassSlot(
            id=slot_id,
            date=obj_in.date,
            start_time=obj_in.start_time,
            lesson_start_at=lesson_start(obj_in.date, obj_in.start_time),
            course_label=obj_in.course_label,
            class_band=obj_in.class_band,
            capacity_limit=obj_in.capacity_limit,
            capacity_current=obj_in.capacity_current,
            makeup_allowed=obj_in.makeup_allowed,
            makeup_used=0,
            waitlist_count=0,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    def update_slot(self, db: Session, *, db_obj: ClassSlot, obj_in: SlotUpdate) -> ClassSlot:
        """
        Edit descriptive fields of a slot. Capacity counters go through
        adjust_capacity instead so waiters can be promoted.
        """
        update_data = obj_in.model_dump(exclude_unset=True, exclude_none=True)

        new_band = update_data.get("class_band")
        if new_band and new_band != db_obj.class_band and self.count_active_requests(db, db_obj.id):
            raise Conflict(
                "Cannot change the class band of a slot with active makeup requests",
                reason="slot_has_requests",
            )

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        if "date" in update_data or "start_time" in update_data:
            db_obj.lesson_start_at = lesson_start(db_obj.date, db_obj.start_time)
            # Keep the denormalised start time on open requests in step
            db.query(MakeupRequest).filter(
                MakeupRequest.to_slot_id == db_obj.id,
                MakeupRequest.status.in_(RequestStatus.active_values()),
            ).update(
                {MakeupRequest.to_slot_start_at: db_obj.lesson_start_at},
                synchronize_session=False,
            )

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete_slot(self, db: Session, *, slot_id: str) -> bool:
        slot = self.get(db, slot_id)
        if not slot:
            return False

        referenced = (
            db.query(func.count(MakeupRequest.id)).filter(MakeupRequest.to_slot_id == slot_id).scalar()
            + db.query(func.count(AbsenceNotice.id))
            .filter(AbsenceNotice.original_slot_id == slot_id)
            .scalar()
        )
        if referenced:
            raise Conflict(
                "This slot has makeup requests or absences and cannot be deleted",
                reason="slot_has_requests",
            )

        db.delete(slot)
        db.commit()
        return True

    def count_active_requests(self, db: Session, slot_id: str) -> int:
        return (
            db.query(func.count(MakeupRequest.id))
            .filter(
                MakeupRequest.to_slot_id == slot_id,
                MakeupRequest.status.in_(RequestStatus.active_values()),
            )
            .scalar()
        )

    # ==================== Ledger ====================

    def _apply_delta(self, db: Session, slot_id: str, column, delta: int) -> int:
        return (
            db.query(self.model)
            .filter(self.model.id == slot_id)
            .update({column: column + delta}, synchronize_session=False)
        )

    def increment_makeup_used(self, db: Session, slot_id: str, delta: int = 1) -> int:
        return self._apply_delta(db, slot_id, self.model.makeup_used, delta)

    def decrement_makeup_used(self, db: Session, slot_id: str, delta: int = 1) -> int:
        return self._apply_delta(db, slot_id, self.model.makeup_used, -delta)

    def increment_waitlist_count(self, db: Session, slot_id: str, delta: int = 1) -> int:
        return self._apply_delta(db, slot_id, self.model.waitlist_count, delta)

    def decrement_waitlist_count(self, db: Session, slot_id: str, delta: int = 1) -> int:
        return self._apply_delta(db, slot_id, self.model.waitlist_count, -delta)

    def increment_makeup_allowed(self, db: Session, slot_id: str, delta: int = 1) -> int:
        return self._apply_delta(db, slot_id, self.model.makeup_allowed, delta)

    def recount_waitlist(self, db: Session, slot_id: str) -> int:
        """Overwrite waitlist_count with the real number of WAITING rows."""
        waiting = (
            db.query(func.count(MakeupRequest.id))
            .filter(
                MakeupRequest.to_slot_id == slot_id,
                MakeupRequest.status == RequestStatus.WAITING,
            )
            .scalar()
        )
        db.query(self.model).filter(self.model.id == slot_id).update(
            {self.model.waitlist_count: waiting}, synchronize_session=False
        )
        return waiting


# Singleton instance
class_slot = CRUDClassSlot(ClassSlot)
