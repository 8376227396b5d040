from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from workshop_booking.database import get_db
from workshop_booking.crud import booking as crud
from workshop_booking.crud import workshop as workshop_crud
from workshop_booking.enums.statuses import BookingStatus
from workshop_booking.models.user import User
from workshop_booking.schemas.booking import (
    AdminBookingItem,
    BookingCreate,
    BookingDetail,
    MyBookingItem,
    Participant,
)
from workshop_booking.schemas.common import Pagination
from workshop_booking.services import booking_ledger
from workshop_booking.services.auth import get_current_user, require_admin

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(
    booking: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    created = booking_ledger.create_booking(
        db,
        user_id=current_user.id,
        workshop_id=booking.workshop_id,
        notes=booking.notes,
    )
    return {
        "success": True,
        "message": "Workshop booked successfully",
        "data": {"booking": BookingDetail.from_booking(created)},
    }


@router.get("/my-bookings")
def read_my_bookings(
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bookings, total = crud.get_user_bookings(
        db, user_id=current_user.id, status=status, page=page, limit=limit
    )
    now = datetime.now()
    items = [
        MyBookingItem.from_booking(
            b,
            can_cancel=(
                b.status == BookingStatus.CONFIRMED
                and not b.workshop.has_started(now)
            ),
        )
        for b in bookings
    ]
    return {
        "success": True,
        "data": {
            "bookings": items,
            "pagination": Pagination.build(page, limit, total),
        },
    }


@router.get("/all")
def read_all_bookings(
    workshop_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    user_email: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    bookings, total = crud.get_all_bookings(
        db,
        workshop_id=workshop_id,
        status=status,
        user_email=user_email,
        page=page,
        limit=limit,
    )
    items = [
        AdminBookingItem.from_booking(
            b,
            user_id=b.user.id,
            email=b.user.email,
            first_name=b.user.first_name,
            last_name=b.user.last_name,
            phone=b.user.phone,
        )
        for b in bookings
    ]
    return {
        "success": True,
        "data": {
            "bookings": items,
            "pagination": Pagination.build(page, limit, total),
        },
    }


@router.get("/workshop/{workshop_id}/participants")
def read_workshop_participants(
    workshop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    workshop = workshop_crud.get_workshop(db, workshop_id)
    if workshop is None:
        raise HTTPException(status_code=404, detail="Workshop not found")

    participants = [
        Participant(
            id=b.user.id,
            email=b.user.email,
            first_name=b.user.first_name,
            last_name=b.user.last_name,
            phone=b.user.phone,
            booking_date=b.booking_date,
            status=b.status,
            notes=b.notes,
        )
        for b in crud.get_participants(db, workshop_id)
    ]
    return {
        "success": True,
        "data": {
            "workshop": {"id": workshop.id, "title": workshop.title},
            "participants": participants,
            "total_participants": len(participants),
        },
    }


@router.delete("/{booking_id}")
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    booking_ledger.cancel_booking(db, booking_id=booking_id, requesting_user=current_user)
    return {"success": True, "message": "Booking cancelled successfully"}


@router.post("/{booking_id}/complete")
def complete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    booking_ledger.complete_booking(db, booking_id=booking_id)
    return {"success": True, "message": "Booking marked as completed"}
