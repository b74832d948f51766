# swim_makeup/schemas/makeup_request.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime

from .slot import ClassBandLiteral, Slot


class MakeupRequestBase(BaseModel):
    child_name: str = Field(..., min_length=1)
    declared_class_band: ClassBandLiteral
    absent_date: date
    to_slot_id: str = Field(..., min_length=1)
    # Links the booking to a logged absence
    resume_token: Optional[str] = None


class BookingCreate(MakeupRequestBase):
    contact_email: Optional[EmailStr] = None


class WaitlistJoin(MakeupRequestBase):
    contact_email: EmailStr


class MakeupRequestOut(BaseModel):
    id: str
    child_name: str
    declared_class_band: str
    absent_date: date
    to_slot_id: str
    to_slot_start_at: datetime
    status: str
    contact_email: Optional[str] = None
    absence_notice_id: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    success: bool = True
    status: str
    message: str
    request: MakeupRequestOut
    # Only returned to the parent who made an immediate booking
    decline_token: Optional[str] = None


class WaitingGroup(BaseModel):
    slot_id: str
    slot: Slot
    requests: List[MakeupRequestOut]


class CloseWaitlistResponse(BaseModel):
    success: bool = True
    slot_id: str
    expired_count: int
    message: str
