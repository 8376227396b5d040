from pydantic import BaseModel, Field, field_validator
from typing import Optional
import datetime as dt
from decimal import Decimal
from workshop_booking.enums.statuses import WorkshopStatus


class WorkshopBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=10, max_length=2000)
    instructor: str = Field(..., min_length=2, max_length=255)
    date: dt.date
    start_time: dt.time  # "HH:MM"
    end_time: dt.time
    location: str = Field(..., min_length=3, max_length=255)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    max_capacity: int = Field(..., ge=1)
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("title", "description", "instructor", "location", "category")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

class WorkshopCreate(WorkshopBase):
    pass

class WorkshopUpdate(WorkshopBase):
    status: WorkshopStatus = WorkshopStatus.ACTIVE

class WorkshopResponse(WorkshopBase):
    id: int
    status: WorkshopStatus
    current_bookings: int
    available_seats: int
    is_full: bool
    user_has_booked: Optional[bool] = None
    created_by: Optional[int] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
