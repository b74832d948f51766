# swim_makeup/models/holiday.py
import uuid
from sqlalchemy import Column, String, Date, DateTime
from swim_makeup.db.base_class import Base
from swim_makeup.utils.clock import school_now


class Holiday(Base):
    """A closure day; slots on this date are hidden from makeup search."""
    __tablename__ = "holidays"

    id = Column(String, primary_key=True, default=lambda: f"hol_{uuid.uuid4().hex[:12]}")
    date = Column(Date, nullable=False, unique=True)
    name = Column(String(120), nullable=False)
    created_at = Column(DateTime, nullable=False, default=school_now)
