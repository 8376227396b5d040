from pydantic import BaseModel, Field
from typing import Optional
import datetime as dt
from decimal import Decimal

from workshop_booking.enums.statuses import BookingStatus


class BookingCreate(BaseModel):
    workshop_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=1000)


class BookingDetail(BaseModel):
    """Booking joined with the display fields of its workshop."""

    id: int
    booking_date: dt.datetime
    status: BookingStatus
    notes: Optional[str] = None
    workshop_id: int
    title: str
    description: str
    instructor: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    location: str
    price: Decimal

    @classmethod
    def from_booking(cls, booking, **extra):
        workshop = booking.workshop
        return cls(
            id=booking.id,
            booking_date=booking.booking_date,
            status=booking.status,
            notes=booking.notes,
            workshop_id=workshop.id,
            title=workshop.title,
            description=workshop.description,
            instructor=workshop.instructor,
            date=workshop.date,
            start_time=workshop.start_time,
            end_time=workshop.end_time,
            location=workshop.location,
            price=workshop.price,
            **extra,
        )


class MyBookingItem(BookingDetail):
    can_cancel: bool


class AdminBookingItem(BookingDetail):
    user_id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


class Participant(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    booking_date: dt.datetime
    status: BookingStatus
    notes: Optional[str] = None
