# swim_makeup/crud/crud_holiday.py
from datetime import date
from typing import List, Set

from sqlalchemy.orm import Session

from swim_makeup.core.errors import Conflict
from swim_makeup.crud.base import CRUDBase
from swim_makeup.models.holiday import Holiday
from swim_makeup.schemas.holiday import HolidayCreate


class CRUDHoliday(CRUDBase[Holiday, HolidayCreate, HolidayCreate]):

    def get_all_ordered(self, db: Session) -> List[Holiday]:
        return db.query(self.model).order_by(self.model.date.asc()).all()

    def get_dates_between(self, db: Session, *, date_from: date, date_to: date) -> Set[date]:
        rows = db.query(self.model.date).filter(
            self.model.date >= date_from, self.model.date <= date_to
        ).all()
        return {row[0] for row in rows}

    def create(self, db: Session, *, obj_in: HolidayCreate) -> Holiday:
        if db.query(self.model).filter(self.model.date == obj_in.date).first():
            raise Conflict("A holiday already exists on this date", reason="holiday_exists")
        return super().create(db, obj_in=obj_in)


holiday = CRUDHoliday(Holiday)
