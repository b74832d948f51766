# swim_makeup/schemas/absence_notice.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime

from .slot import ClassBandLiteral, SlotSearchResult
from .makeup_request import MakeupRequestOut


class AbsenceCreate(BaseModel):
    child_name: str = Field(..., min_length=1)
    declared_class_band: ClassBandLiteral
    original_slot_id: str = Field(..., min_length=1)
    contact_email: Optional[EmailStr] = None


class AbsenceNotice(BaseModel):
    id: str
    child_name: str
    declared_class_band: str
    contact_email: Optional[str] = None
    absent_date: date
    original_slot_id: str
    makeup_deadline: datetime
    status: str
    makeup_slot_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AbsenceCreated(AbsenceNotice):
    # Returned once at creation; the parent keeps it to resume later
    resume_token: str


class AbsenceResume(BaseModel):
    notice: AbsenceNotice
    active_request: Optional[MakeupRequestOut] = None
    slots: List[SlotSearchResult] = []
