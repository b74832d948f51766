# swim_makeup/models/absence_notice.py
import uuid
from sqlalchemy import Column, String, Date, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from swim_makeup.db.base_class import Base
from swim_makeup.utils.clock import school_now


class AbsenceNotice(Base):
    """
    A parent's reported absence, spanning the whole absence-to-makeup journey.

    The resume_token is the only credential a parent holds; it lets them pick
    the journey up again from any device.
    """
    __tablename__ = "absence_notices"

    id = Column(String, primary_key=True, default=lambda: f"abs_{uuid.uuid4().hex[:12]}")

    child_name = Column(String(120), nullable=False)
    declared_class_band = Column(String(20), nullable=False)
    contact_email = Column(String(320), nullable=True)
    absent_date = Column(Date, nullable=False)

    original_slot_id = Column(String, ForeignKey("class_slots.id", ondelete="RESTRICT"), nullable=False, index=True)
    resume_token = Column(String(128), nullable=False, unique=True)
    makeup_deadline = Column(DateTime, nullable=False, index=True)

    status = Column(String(20), nullable=False, server_default="ABSENT_LOGGED")
    makeup_slot_id = Column(String, ForeignKey("class_slots.id", ondelete="SET NULL"), nullable=True)
    # Seats this absence added to the original slot's makeup allowance
    makeup_allowance_delta = Column(Integer, nullable=False, server_default="0")

    created_at = Column(DateTime, nullable=False, default=school_now)
    updated_at = Column(DateTime, nullable=False, default=school_now, onupdate=school_now)

    requests = relationship("MakeupRequest", back_populates="absence_notice")

    __table_args__ = (
        UniqueConstraint('child_name', 'original_slot_id', name='unique_child_original_slot'),
    )
