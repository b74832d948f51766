# swim_makeup/schemas/slot.py
from pydantic import BaseModel, Field
from typing import Optional, Literal
import datetime as dt

ClassBandLiteral = Literal["BEGINNER", "INTERMEDIATE", "ADVANCED"]
HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class Slot(BaseModel):
    id: str
    date: dt.date
    start_time: str
    lesson_start_at: dt.datetime
    course_label: str
    class_band: str
    capacity_limit: int
    capacity_current: int
    makeup_allowed: int
    makeup_used: int
    waitlist_count: int
    remaining_makeup_slots: int

    model_config = {"from_attributes": True}


class SlotOption(BaseModel):
    """A lesson a parent can pick as the one their child will miss."""
    id: str
    date: dt.date
    start_time: str
    lesson_start_at: dt.datetime
    course_label: str
    class_band: str

    model_config = {"from_attributes": True}


class SlotCreate(BaseModel):
    date: dt.date
    start_time: str = Field(..., pattern=HHMM_PATTERN, json_schema_extra={"example": "16:00"})
    course_label: str = Field(..., min_length=1)
    class_band: ClassBandLiteral
    capacity_limit: int = Field(0, ge=0)
    capacity_current: int = Field(0, ge=0)
    makeup_allowed: int = Field(0, ge=0)


class SlotUpdate(BaseModel):
    date: Optional[dt.date] = None
    start_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    course_label: Optional[str] = Field(None, min_length=1)
    class_band: Optional[ClassBandLiteral] = None
    capacity_limit: Optional[int] = Field(None, ge=0)
    capacity_current: Optional[int] = Field(None, ge=0)


class SlotCapacityUpdate(BaseModel):
    """
    Admin counter edit. A field left out (or null) keeps its current value.
    """
    makeup_allowed: Optional[int] = Field(None, ge=0)
    makeup_used: Optional[int] = Field(None, ge=0)
    capacity_current: Optional[int] = Field(None, ge=0)

    def provided_fields(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class SlotSearchRequest(BaseModel):
    child_name: str = Field(..., min_length=1)
    declared_class_band: ClassBandLiteral
    absent_date: dt.date


class SlotSearchResult(BaseModel):
    slot_id: str
    date: dt.date
    start_time: str
    lesson_start_at: dt.datetime
    course_label: str
    class_band: str
    availability: Literal["open", "last-slot", "full"]
    status_text: str
    remaining_slots: int
    waitlist_count: int
