from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from workshop_booking.database import get_db
from workshop_booking.crud import booking as booking_crud
from workshop_booking.crud import user as crud
from workshop_booking.models.user import User
from workshop_booking.schemas.booking import BookingDetail
from workshop_booking.schemas.user import UserResponse, UserUpdate
from workshop_booking.services.auth import get_current_user

router = APIRouter()


@router.get("/profile")
def read_profile(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": UserResponse.model_validate(current_user)}}


@router.put("/profile")
def update_profile(
    user: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not user.model_dump(exclude_unset=True):
        raise HTTPException(status_code=400, detail="No fields to update")

    updated = crud.update_user(db, current_user, user)
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": UserResponse.model_validate(updated)},
    }


@router.get("/bookings")
def read_booking_history(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    bookings = booking_crud.get_booking_history(db, current_user.id)
    return {
        "success": True,
        "data": {"bookings": [BookingDetail.from_booking(b) for b in bookings]},
    }
