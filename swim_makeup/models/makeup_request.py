# swim_makeup/models/makeup_request.py
import uuid
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from swim_makeup.db.base_class import Base
from swim_makeup.utils.clock import school_now


class MakeupRequest(Base):
    """
    One parent's claim on one makeup slot.

    Status: WAITING -> CONFIRMED -> DECLINED, WAITING -> EXPIRED.
    created_at is the FIFO key for waitlist promotion.
    """
    __tablename__ = "makeup_requests"

    id = Column(String, primary_key=True, default=lambda: f"req_{uuid.uuid4().hex[:12]}")

    child_name = Column(String(120), nullable=False)
    declared_class_band = Column(String(20), nullable=False)
    absent_date = Column(Date, nullable=False)

    to_slot_id = Column(String, ForeignKey("class_slots.id", ondelete="RESTRICT"), nullable=False, index=True)
    # Copy of the slot's lesson start so expiry queries need no join
    to_slot_start_at = Column(DateTime, nullable=False, index=True)

    status = Column(String(20), nullable=False, index=True)
    contact_email = Column(String(320), nullable=True)
    decline_token = Column(String(128), nullable=True, unique=True)

    absence_notice_id = Column(
        String, ForeignKey("absence_notices.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime, nullable=False, default=school_now)
    confirmed_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)  # DECLINED or EXPIRED

    slot = relationship("ClassSlot")
    absence_notice = relationship("AbsenceNotice", back_populates="requests")

    __table_args__ = (
        Index('ix_makeup_requests_slot_status_created', 'to_slot_id', 'status', 'created_at'),
    )
