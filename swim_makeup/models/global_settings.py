# swim_makeup/models/global_settings.py
from sqlalchemy import Column, Integer, String, DateTime
from swim_makeup.db.base_class import Base
from swim_makeup.utils.clock import school_now


class GlobalSettings(Base):
    """Singleton (id=1) school-wide booking rules."""
    __tablename__ = "global_settings"

    id = Column(Integer, primary_key=True, default=1)
    makeup_window_days = Column(Integer, nullable=False, server_default="30")
    cutoff_time = Column(String(5), nullable=False, server_default="12:00")
    updated_at = Column(DateTime, nullable=False, default=school_now, onupdate=school_now)
