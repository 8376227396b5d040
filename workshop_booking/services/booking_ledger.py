"""
Booking ledger: the only code that creates, cancels or completes bookings
and the only writer of ``Workshop.current_bookings``.

Every operation runs in a single transaction that first locks the workshop
row (SELECT ... FOR UPDATE), so ledger operations on one workshop are
serialized. The counter itself is moved with guarded UPDATE statements
(``current_bookings < max_capacity`` to take a seat, ``> 0`` to free one),
which keeps the capacity invariant even on backends that ignore row locks.
Whatever happens, the transaction either commits the booking row and the
counter change together or rolls both back.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workshop_booking.crud import booking as booking_crud
from workshop_booking.crud import workshop as workshop_crud
from workshop_booking.enums.statuses import BookingStatus
from workshop_booking.exceptions import (
    AlreadyCancelled,
    BookingError,
    CapacityExceeded,
    DuplicateBooking,
    Forbidden,
    Internal,
    InvalidTransition,
    NotFound,
    PastEvent,
)
from workshop_booking.models.booking import Booking
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.services.permissions import can_manage_booking

logger = logging.getLogger(__name__)


@contextmanager
def _ledger_transaction(db: Session, action: str):
    try:
        yield
        db.commit()
    except BookingError as exc:
        db.rollback()
        logger.info("%s rejected: %s", action, exc.message)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s failed, transaction rolled back", action)
        raise Internal(f"Internal server error during {action}")


def _is_duplicate_confirmed(exc: IntegrityError) -> bool:
    """True when exc comes from the one-confirmed-booking-per-user index."""
    message = str(exc.orig)
    return (
        "uq_bookings_user_workshop_confirmed" in message
        or "UNIQUE constraint failed: bookings.user_id, bookings.workshop_id" in message
    )


def _take_seat(db: Session, workshop_id: int) -> bool:
    taken = (
        db.query(Workshop)
        .filter(
            Workshop.id == workshop_id,
            Workshop.current_bookings < Workshop.max_capacity,
        )
        .update(
            {Workshop.current_bookings: Workshop.current_bookings + 1},
            synchronize_session=False,
        )
    )
    return taken == 1


def _release_seat(db: Session, workshop_id: int) -> None:
    released = (
        db.query(Workshop)
        .filter(Workshop.id == workshop_id, Workshop.current_bookings > 0)
        .update(
            {Workshop.current_bookings: Workshop.current_bookings - 1},
            synchronize_session=False,
        )
    )
    if released != 1:
        logger.warning(
            "Workshop %s seat counter already at 0 while releasing a seat",
            workshop_id,
        )


def _move_status(
    db: Session, booking_id: int, new_status: BookingStatus
) -> bool:
    """Moves a confirmed booking to new_status; False if it is no longer confirmed."""
    moved = (
        db.query(Booking)
        .filter(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED)
        .update({Booking.status: new_status}, synchronize_session=False)
    )
    return moved == 1


def _lock_booking_workshop(db: Session, booking: Booking) -> Workshop:
    workshop = workshop_crud.get_workshop(db, booking.workshop_id, lock=True)
    if workshop is None:
        raise NotFound("Workshop not found")
    # Status as of acquiring the lock: a concurrent request may have changed it
    db.refresh(booking)
    return workshop


def create_booking(
    db: Session,
    user_id: int,
    workshop_id: int,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Books one seat of a workshop for a user.

    Checks, in order: the workshop exists and is active (NotFound), it has
    not started (PastEvent), the user holds no confirmed booking for it
    (DuplicateBooking), and a seat is free (CapacityExceeded).
    """
    now = now or datetime.now()

    with _ledger_transaction(db, "booking"):
        workshop = workshop_crud.get_bookable_workshop(db, workshop_id, lock=True)
        if workshop is None:
            raise NotFound("Workshop not found or not available for booking")

        if workshop.has_started(now):
            raise PastEvent("Cannot book past workshops")

        if booking_crud.get_confirmed_booking(db, user_id, workshop_id):
            raise DuplicateBooking("You have already booked this workshop")

        if workshop.current_bookings >= workshop.max_capacity:
            raise CapacityExceeded("Workshop is fully booked")
        if not _take_seat(db, workshop_id):
            raise CapacityExceeded("Workshop is fully booked")

        booking = Booking(
            user_id=user_id,
            workshop_id=workshop_id,
            notes=notes or None,
            status=BookingStatus.CONFIRMED,
        )
        db.add(booking)
        try:
            db.flush()
        except IntegrityError as exc:
            if not _is_duplicate_confirmed(exc):
                raise
            raise DuplicateBooking("You have already booked this workshop")

    db.refresh(booking)
    logger.info(
        "Booking %s confirmed: user=%s workshop=%s seats_taken=%s/%s",
        booking.id,
        user_id,
        workshop_id,
        booking.workshop.current_bookings,
        booking.workshop.max_capacity,
    )
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    requesting_user: User,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Cancels a booking on behalf of its owner or an administrator.

    Checks, in order: the booking exists (NotFound), the requester may manage
    it (Forbidden), it is not cancelled yet (AlreadyCancelled), and its
    workshop has not started (PastEvent). The cutoff is the start timestamp.
    """
    now = now or datetime.now()

    with _ledger_transaction(db, "booking cancellation"):
        booking = booking_crud.get_booking(db, booking_id)
        if booking is None:
            raise NotFound("Booking not found")

        if not can_manage_booking(requesting_user, booking):
            raise Forbidden("You can only cancel your own bookings")

        workshop = _lock_booking_workshop(db, booking)

        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelled("Booking is already cancelled")

        if workshop.has_started(now):
            raise PastEvent("Cannot cancel bookings for past or ongoing workshops")

        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition("Only confirmed bookings can be cancelled")

        if not _move_status(db, booking.id, BookingStatus.CANCELLED):
            raise AlreadyCancelled("Booking is already cancelled")
        _release_seat(db, workshop.id)

    logger.info(
        "Booking %s cancelled by user %s (workshop %s)",
        booking_id,
        requesting_user.id,
        booking.workshop_id,
    )
    return booking


def complete_booking(
    db: Session, booking_id: int, now: Optional[datetime] = None
) -> Booking:
    """
    Marks a confirmed booking as attended once its workshop has started.

    A completed booking no longer counts as confirmed, so its seat is
    released from the counter in the same transaction.
    """
    now = now or datetime.now()

    with _ledger_transaction(db, "booking completion"):
        booking = booking_crud.get_booking(db, booking_id)
        if booking is None:
            raise NotFound("Booking not found")

        workshop = _lock_booking_workshop(db, booking)

        if booking.status == BookingStatus.CANCELLED:
            raise InvalidTransition("Cancelled bookings cannot be completed")
        if booking.status == BookingStatus.COMPLETED:
            raise InvalidTransition("Booking is already completed")
        if not workshop.has_started(now):
            raise InvalidTransition("Workshop has not started yet")

        if not _move_status(db, booking.id, BookingStatus.COMPLETED):
            raise InvalidTransition("Booking is no longer confirmed")
        _release_seat(db, workshop.id)

    logger.info("Booking %s completed (workshop %s)", booking_id, booking.workshop_id)
    return booking
