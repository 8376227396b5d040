from sqlalchemy.orm import Session, joinedload
from typing import List, Optional, Tuple

from workshop_booking.models.booking import Booking
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.enums.statuses import BookingStatus


def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
    return db.query(Booking).filter(Booking.id == booking_id).first()


def get_confirmed_booking(
    db: Session, user_id: int, workshop_id: int
) -> Optional[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.user_id == user_id,
            Booking.workshop_id == workshop_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        .first()
    )


def get_user_bookings(
    db: Session,
    user_id: int,
    status: Optional[BookingStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Booking], int]:
    query = (
        db.query(Booking)
        .join(Workshop, Booking.workshop_id == Workshop.id)
        .options(joinedload(Booking.workshop))
        .filter(Booking.user_id == user_id)
    )
    if status:
        query = query.filter(Booking.status == status)

    total = query.count()
    bookings = (
        query.order_by(Workshop.date.desc(), Workshop.start_time.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return bookings, total


def get_booking_history(db: Session, user_id: int) -> List[Booking]:
    return (
        db.query(Booking)
        .options(joinedload(Booking.workshop))
        .filter(Booking.user_id == user_id)
        .order_by(Booking.booking_date.desc(), Booking.id.desc())
        .all()
    )


def get_all_bookings(
    db: Session,
    workshop_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    user_email: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Booking], int]:
    query = (
        db.query(Booking)
        .join(User, Booking.user_id == User.id)
        .options(joinedload(Booking.workshop), joinedload(Booking.user))
    )
    if workshop_id:
        query = query.filter(Booking.workshop_id == workshop_id)
    if status:
        query = query.filter(Booking.status == status)
    if user_email:
        query = query.filter(User.email.ilike(f"%{user_email.strip()}%"))

    total = query.count()
    bookings = (
        query.order_by(Booking.booking_date.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return bookings, total


def get_participants(db: Session, workshop_id: int) -> List[Booking]:
    """Confirmed bookings of a workshop, earliest first, with their users loaded."""
    return (
        db.query(Booking)
        .options(joinedload(Booking.user))
        .filter(
            Booking.workshop_id == workshop_id,
            Booking.status == BookingStatus.CONFIRMED,
        )
        .order_by(Booking.booking_date.asc(), Booking.id.asc())
        .all()
    )
