# swim_makeup/models/class_slot.py
from sqlalchemy import Column, String, Date, DateTime, Integer, CheckConstraint, Index
from swim_makeup.db.base_class import Base
from swim_makeup.utils.clock import school_now


class ClassSlot(Base):
    """
    One offered lesson occurrence, plus its makeup capacity ledger.

    - makeup_allowed / makeup_used gate makeup bookings (not capacity_limit)
    - waitlist_count caches the number of WAITING requests for this slot and
      is only ever changed in the same transaction as those requests
    """
    __tablename__ = "class_slots"

    # "2025-11-03_16:00_beginner"
    id = Column(String, primary_key=True)

    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    lesson_start_at = Column(DateTime, nullable=False, index=True)
    course_label = Column(String(120), nullable=False)
    class_band = Column(String(20), nullable=False, index=True)

    # Regular enrolment
    capacity_limit = Column(Integer, nullable=False, server_default="0")
    capacity_current = Column(Integer, nullable=False, server_default="0")

    # Makeup ledger
    makeup_allowed = Column(Integer, nullable=False, server_default="0")
    makeup_used = Column(Integer, nullable=False, server_default="0")
    waitlist_count = Column(Integer, nullable=False, server_default="0")

    created_at = Column(DateTime, nullable=False, default=school_now)
    updated_at = Column(DateTime, nullable=False, default=school_now, onupdate=school_now)

    __table_args__ = (
        CheckConstraint('makeup_used >= 0', name='check_makeup_used_positive'),
        CheckConstraint('waitlist_count >= 0', name='check_waitlist_count_positive'),
        CheckConstraint(
            "class_band IN ('BEGINNER', 'INTERMEDIATE', 'ADVANCED')",
            name='check_slot_class_band',
        ),
        Index('ix_class_slots_band_date', 'class_band', 'date'),
    )

    @property
    def remaining_makeup_slots(self) -> int:
        return self.makeup_allowed - self.makeup_used
