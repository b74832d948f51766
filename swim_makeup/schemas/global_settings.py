# swim_makeup/schemas/global_settings.py
from pydantic import BaseModel, Field
from typing import Optional

from .slot import HHMM_PATTERN


class GlobalSettingsOut(BaseModel):
    makeup_window_days: int
    cutoff_time: str

    model_config = {"from_attributes": True}


class GlobalSettingsUpdate(BaseModel):
    makeup_window_days: Optional[int] = Field(None, ge=1, le=365)
    cutoff_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
