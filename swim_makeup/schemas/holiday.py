# swim_makeup/schemas/holiday.py
from pydantic import BaseModel, Field
from datetime import date, datetime


class HolidayCreate(BaseModel):
    date: date
    name: str = Field(..., min_length=1)


class Holiday(BaseModel):
    id: str
    date: date
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}
