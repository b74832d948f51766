# swim_makeup/crud/crud_absence_notice.py
import secrets
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import AbsenceStatus
from swim_makeup.crud.base import CRUDBase
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.schemas.absence_notice import AbsenceCreate


def generate_resume_token() -> str:
    return secrets.token_urlsafe(32)


class CRUDAbsenceNotice(CRUDBase[AbsenceNotice, AbsenceCreate, AbsenceCreate]):
    """CRUD operations for absence notices. Status changes never commit."""

    def get_by_resume_token(self, db: Session, *, token: str) -> Optional[AbsenceNotice]:
        return db.query(self.model).filter(self.model.resume_token == token).first()

    def get_by_child_and_slot(
        self, db: Session, *, child_name: str, original_slot_id: str
    ) -> Optional[AbsenceNotice]:
        return db.query(self.model).filter(
            self.model.child_name == child_name,
            self.model.original_slot_id == original_slot_id,
        ).first()

    def add_notice(
        self,
        db: Session,
        *,
        obj_in: AbsenceCreate,
        absent_date,
        makeup_deadline: datetime,
    ) -> AbsenceNotice:
        """Stage a new notice in the current transaction (flushes, no commit)."""
        notice = AbsenceNotice(
            child_name=obj_in.child_name,
            declared_class_band=obj_in.declared_class_band,
            contact_email=obj_in.contact_email,
            absent_date=absent_date,
            original_slot_id=obj_in.original_slot_id,
            resume_token=generate_resume_token(),
            makeup_deadline=makeup_deadline,
            status=AbsenceStatus.ABSENT_LOGGED,
        )
        db.add(notice)
        db.flush()
        return notice

    def set_status(
        self,
        db: Session,
        *,
        notice_id: str,
        status: str,
        makeup_slot_id: Optional[str] = None,
    ) -> int:
        return (
            db.query(self.model)
            .filter(self.model.id == notice_id)
            .update(
                {self.model.status: status, self.model.makeup_slot_id: makeup_slot_id},
                synchronize_session=False,
            )
        )

    def get_past_deadline(self, db: Session, *, now: datetime) -> List[AbsenceNotice]:
        """Notices whose makeup window closed while they were still open."""
        return db.query(self.model).filter(
            self.model.makeup_deadline < now,
            self.model.status.in_(AbsenceStatus.sweepable_values()),
        ).all()


# Instantiate CRUD object
absence_notice = CRUDAbsenceNotice(AbsenceNotice)
