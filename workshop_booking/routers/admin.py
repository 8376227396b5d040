from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from workshop_booking.database import get_db
from workshop_booking.crud import booking as booking_crud
from workshop_booking.crud import stats as crud
from workshop_booking.crud import workshop as workshop_crud
from workshop_booking.models.user import User
from workshop_booking.services.auth import require_admin

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/dashboard")
def read_dashboard(
    db: Session = Depends(get_db), current_user: User = Depends(require_admin)
):
    recent_bookings = [
        {
            "id": b.id,
            "booking_date": b.booking_date,
            "first_name": b.user.first_name,
            "last_name": b.user.last_name,
            "email": b.user.email,
            "title": b.workshop.title,
            "date": b.workshop.date,
            "start_time": b.workshop.start_time,
        }
        for b in crud.get_recent_bookings(db)
    ]
    upcoming_workshops = [
        {
            "id": w.id,
            "title": w.title,
            "date": w.date,
            "start_time": w.start_time,
            "instructor": w.instructor,
            "current_bookings": w.current_bookings,
            "max_capacity": w.max_capacity,
            "available_seats": w.available_seats,
        }
        for w in crud.get_upcoming_workshops(db)
    ]
    return {
        "success": True,
        "data": {
            "statistics": crud.get_dashboard_statistics(db),
            "recent_bookings": recent_bookings,
            "upcoming_workshops": upcoming_workshops,
        },
    }


@router.get("/workshops/analytics")
def read_workshop_analytics(
    db: Session = Depends(get_db), current_user: User = Depends(require_admin)
):
    return {"success": True, "data": crud.get_workshop_analytics(db)}


@router.get("/users/analytics")
def read_user_analytics(
    db: Session = Depends(get_db), current_user: User = Depends(require_admin)
):
    return {"success": True, "data": crud.get_user_analytics(db)}


@router.get("/financial")
def read_financial_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        report = crud.get_financial_report(db, start_date=start_date, end_date=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": report}


@router.get("/workshops/{workshop_id}/export")
def export_participants(
    workshop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    workshop = workshop_crud.get_workshop(db, workshop_id)
    if workshop is None:
        raise HTTPException(status_code=404, detail="Workshop not found")

    participants = booking_crud.get_participants(db, workshop_id)
    return {
        "success": True,
        "data": {
            "workshop": {
                "title": workshop.title,
                "instructor": workshop.instructor,
                "date": workshop.date,
                "time": f"{workshop.start_time:%H:%M} - {workshop.end_time:%H:%M}",
                "location": workshop.location,
                "total_participants": len(participants),
                "max_capacity": workshop.max_capacity,
            },
            "participants": [
                {
                    "sno": index,
                    "name": b.user.full_name,
                    "email": b.user.email,
                    "phone": b.user.phone or "N/A",
                    "booking_date": b.booking_date,
                    "notes": b.notes or "N/A",
                }
                for index, b in enumerate(participants, start=1)
            ],
        },
    }


@router.get("/consistency")
def check_consistency(
    db: Session = Depends(get_db), current_user: User = Depends(require_admin)
):
    """Lists workshops whose seat counter disagrees with their confirmed bookings."""
    drift = crud.find_counter_drift(db)
    if drift:
        logger.warning("Seat counter drift detected on %d workshop(s)", len(drift))
    return {
        "success": True,
        "data": {
            "consistent": not drift,
            "workshops": [d._asdict() for d in drift],
        },
    }
