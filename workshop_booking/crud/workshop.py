from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Iterable, List, Optional, Set, Tuple
from datetime import date
import logging

from workshop_booking.models.booking import Booking
from workshop_booking.models.workshop import Workshop
from workshop_booking.enums.statuses import BookingStatus, WorkshopStatus
from workshop_booking.schemas.workshop import WorkshopCreate, WorkshopUpdate

logger = logging.getLogger(__name__)


def get_workshop(db: Session, workshop_id: int, lock: bool = False) -> Optional[Workshop]:
    query = db.query(Workshop).filter(Workshop.id == workshop_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def get_bookable_workshop(
    db: Session, workshop_id: int, lock: bool = False
) -> Optional[Workshop]:
    """
    Returns the workshop only if it can take bookings (status active).

    With lock=True the row is read with SELECT ... FOR UPDATE, which holds
    off any other locking reader of the same workshop until the current
    transaction ends.
    """
    query = db.query(Workshop).filter(
        Workshop.id == workshop_id, Workshop.status == WorkshopStatus.ACTIVE
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def get_workshops(
    db: Session,
    page: int = 1,
    limit: int = 10,
    category: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: WorkshopStatus = WorkshopStatus.ACTIVE,
) -> Tuple[List[Workshop], int]:
    query = db.query(Workshop).filter(Workshop.status == status)

    if category:
        query = query.filter(Workshop.category == category)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Workshop.title.ilike(term),
                Workshop.description.ilike(term),
                Workshop.instructor.ilike(term),
            )
        )
    if date_from:
        query = query.filter(Workshop.date >= date_from)
    if date_to:
        query = query.filter(Workshop.date <= date_to)

    total = query.count()
    workshops = (
        query.order_by(Workshop.date.asc(), Workshop.start_time.asc(), Workshop.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return workshops, total


def get_booked_workshop_ids(
    db: Session, user_id: int, workshop_ids: Iterable[int]
) -> Set[int]:
    """Ids among workshop_ids for which the user holds a confirmed booking."""
    workshop_ids = list(workshop_ids)
    if not workshop_ids:
        return set()
    rows = (
        db.query(Booking.workshop_id)
        .filter(
            Booking.user_id == user_id,
            Booking.workshop_id.in_(workshop_ids),
            Booking.status == BookingStatus.CONFIRMED,
        )
        .all()
    )
    return {row.workshop_id for row in rows}


def get_categories(db: Session) -> List[str]:
    rows = (
        db.query(Workshop.category)
        .filter(
            Workshop.category.isnot(None), Workshop.status == WorkshopStatus.ACTIVE
        )
        .distinct()
        .order_by(Workshop.category)
        .all()
    )
    return [row.category for row in rows]


def create_workshop(db: Session, workshop: WorkshopCreate, created_by: int) -> Workshop:
    if workshop.end_time <= workshop.start_time:
        raise ValueError("End time must be after start time")
    if workshop.date < date.today():
        raise ValueError("Workshop date must be in the future")

    db_workshop = Workshop(
        **workshop.model_dump(),
        current_bookings=0,
        status=WorkshopStatus.ACTIVE,
        created_by=created_by,
    )
    db.add(db_workshop)
    db.commit()
    db.refresh(db_workshop)
    logger.info("Workshop %s created by user %s", db_workshop.id, created_by)
    return db_workshop


def update_workshop(
    db: Session, workshop_id: int, workshop: WorkshopUpdate
) -> Optional[Workshop]:
    """
    Replaces every editable field of a workshop.

    The row is locked so the capacity check cannot interleave with a
    concurrent booking. current_bookings is never written here.
    """
    db_workshop = get_workshop(db, workshop_id, lock=True)
    if not db_workshop:
        db.rollback()
        return None

    if workshop.max_capacity < db_workshop.current_bookings:
        db.rollback()
        raise ValueError(
            f"Cannot reduce capacity below current bookings ({db_workshop.current_bookings})"
        )
    if workshop.end_time <= workshop.start_time:
        db.rollback()
        raise ValueError("End time must be after start time")

    for field, value in workshop.model_dump().items():
        setattr(db_workshop, field, value)

    db.commit()
    db.refresh(db_workshop)
    logger.info("Workshop %s updated", workshop_id)
    return db_workshop


def delete_workshop(db: Session, workshop_id: int) -> bool:
    db_workshop = get_workshop(db, workshop_id, lock=True)
    if not db_workshop:
        db.rollback()
        return False

    if db_workshop.current_bookings > 0:
        db.rollback()
        raise ValueError(
            "Cannot delete workshop with existing bookings. "
            "Cancel bookings first or mark workshop as cancelled."
        )
    # Booking rows are kept forever, so a workshop with history stays too
    has_history = (
        db.query(Booking.id).filter(Booking.workshop_id == workshop_id).first()
        is not None
    )
    if has_history:
        db.rollback()
        raise ValueError(
            "Cannot delete workshop with booking history. Mark it as cancelled instead."
        )

    db.delete(db_workshop)
    db.commit()
    logger.info("Workshop %s deleted", workshop_id)
    return True
