# swim_makeup/crud/crud_makeup_request.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import RequestStatus
from swim_makeup.crud.base import CRUDBase
from swim_makeup.models.makeup_request import MakeupRequest
from swim_makeup.schemas.makeup_request import BookingCreate
from swim_makeup.utils.validators import validate_request_transition


class CRUDMakeupRequest(CRUDBase[MakeupRequest, BookingCreate, BookingCreate]):
    """
    CRUD operations for makeup requests with FIFO waitlist queries.

    Nothing here commits except where noted; status changes are made in the
    same transaction as the slot counter changes that go with them.
    """

    def _fifo(self, query):
        # id breaks ties between requests created in the same instant
        return query.order_by(self.model.created_at.asc(), self.model.id.asc())

    def get_by_decline_token(self, db: Session, *, token: str) -> Optional[MakeupRequest]:
        return db.query(self.model).filter(self.model.decline_token == token).first()

    def get_oldest_waiting(self, db: Session, *, slot_id: str) -> Optional[MakeupRequest]:
        """Head of the waitlist for a slot (strict FIFO, no priority classes)."""
        query = db.query(self.model).filter(
            self.model.to_slot_id == slot_id,
            self.model.status == RequestStatus.WAITING,
        )
        return self._fifo(query).populate_existing().first()

    def get_waiting_for_slot(self, db: Session, *, slot_id: str) -> List[MakeupRequest]:
        query = db.query(self.model).filter(
            self.model.to_slot_id == slot_id,
            self.model.status == RequestStatus.WAITING,
        )
        return self._fifo(query).all()

    def get_active_for_child(
        self, db: Session, *, slot_id: str, child_name: str
    ) -> Optional[MakeupRequest]:
        """Get a WAITING or CONFIRMED request by this child for this slot."""
        return db.query(self.model).filter(
            self.model.to_slot_id == slot_id,
            self.model.child_name == child_name,
            self.model.status.in_(RequestStatus.active_values()),
        ).first()

    def get_active_for_notice(self, db: Session, *, notice_id: str) -> Optional[MakeupRequest]:
        return db.query(self.model).filter(
            self.model.absence_notice_id == notice_id,
            self.model.status.in_(RequestStatus.active_values()),
        ).first()

    def get_waiting_starting_before(self, db: Session, *, until: datetime) -> List[MakeupRequest]:
        """
        WAITING requests whose lesson starts at or before `until`.

        No lower bound on the start time: a lesson that started while the
        sweeper was down still holds WAITING rows, and they would otherwise
        stay WAITING (and counted in waitlist_count) forever.
        """
        query = db.query(self.model).filter(
            self.model.status == RequestStatus.WAITING,
            self.model.to_slot_start_at <= until,
        )
        return self._fifo(query.order_by(self.model.to_slot_start_at.asc())).all()

    def get_all_by_status(self, db: Session, *, status: str) -> List[MakeupRequest]:
        query = db.query(self.model).filter(self.model.status == status)
        return self._fifo(query.order_by(self.model.to_slot_start_at.asc())).all()

    def count_by_status(self, db: Session, *, slot_id: str, status: str) -> int:
        return (
            db.query(func.count(self.model.id))
            .filter(self.model.to_slot_id == slot_id, self.model.status == status)
            .scalar()
        )

    def add_request(
        self,
        db: Session,
        *,
        child_name: str,
        declared_class_band: str,
        absent_date,
        to_slot_id: str,
        to_slot_start_at: datetime,
        status: str,
        contact_email: Optional[str] = None,
        decline_token: Optional[str] = None,
        absence_notice_id: Optional[str] = None,
        confirmed_at: Optional[datetime] = None,
    ) -> MakeupRequest:
        """Stage a new request in the current transaction (flushes, no commit)."""
        request = MakeupRequest(
            child_name=child_name,
            declared_class_band=declared_class_band,
            absent_date=absent_date,
            to_slot_id=to_slot_id,
            to_slot_start_at=to_slot_start_at,
            status=status,
            contact_email=contact_email,
            decline_token=decline_token,
            absence_notice_id=absence_notice_id,
            confirmed_at=confirmed_at,
        )
        db.add(request)
        db.flush()
        return request

    def transition(
        self,
        db: Session,
        *,
        request_id: str,
        from_status: str,
        to_status: str,
        **values,
    ) -> bool:
        """
        Compare-and-set status change.

        The UPDATE only matches while the row still has `from_status`, so two
        workers racing for the same request cannot both win. Returns False
        when the row had already moved on.
        """
        validate_request_transition(from_status, to_status)

        update_values = {self.model.status: to_status}
        for field, value in values.items():
            update_values[getattr(self.model, field)] = value

        matched = (
            db.query(self.model)
            .filter(self.model.id == request_id, self.model.status == from_status)
            .update(update_values, synchronize_session=False)
        )
        return matched == 1


# Instantiate CRUD object
makeup_request = CRUDMakeupRequest(MakeupRequest)
