"""
Concurrent booking tests.

Each worker thread gets its own connection to a file-backed SQLite database,
so requests really race for the same workshop row.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from workshop_booking.crud.stats import find_counter_drift
from workshop_booking.database import Base
from workshop_booking.enums.statuses import BookingStatus
from workshop_booking.exceptions import BookingError, CapacityExceeded
from workshop_booking.models.booking import Booking
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.services import booking_ledger


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def _seed(session_factory, max_capacity, users):
    db = session_factory()
    try:
        workshop = Workshop(
            title="Knife Skills",
            description="Basic knife techniques for home cooks.",
            instructor="Sam Chen",
            location="Kitchen Lab",
            date=date.today() + timedelta(days=2),
            start_time=time(18, 0),
            end_time=time(20, 0),
            price=Decimal("40.00"),
            max_capacity=max_capacity,
            current_bookings=0,
        )
        db.add(workshop)
        user_rows = [
            User(
                email=f"racer{i}@example.com",
                hashed_password="hashed",
                first_name=f"Racer{i}",
                last_name="Tester",
            )
            for i in range(users)
        ]
        db.add_all(user_rows)
        db.commit()
        return workshop.id, [u.id for u in user_rows]
    finally:
        db.close()


def _race(session_factory, workshop_id, user_ids):
    barrier = threading.Barrier(len(user_ids))

    def attempt(user_id):
        db = session_factory()
        try:
            barrier.wait()
            booking_ledger.create_booking(db, user_id=user_id, workshop_id=workshop_id)
            return "confirmed"
        except BookingError as exc:
            return type(exc).__name__
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(user_ids)) as pool:
        return list(pool.map(attempt, user_ids))


def test_two_users_race_for_last_seat(session_factory):
    """
    Test: two simultaneous bookings for a single seat give exactly one
    confirmation and one CapacityExceeded
    """
    workshop_id, user_ids = _seed(session_factory, max_capacity=1, users=2)

    results = _race(session_factory, workshop_id, user_ids)

    assert sorted(results) == sorted(["confirmed", CapacityExceeded.__name__])

    db = session_factory()
    try:
        workshop = db.query(Workshop).filter(Workshop.id == workshop_id).one()
        assert workshop.current_bookings == 1
        assert (
            db.query(Booking)
            .filter(Booking.status == BookingStatus.CONFIRMED)
            .count()
            == 1
        )
        assert find_counter_drift(db) == []
    finally:
        db.close()


def test_many_users_never_overbook(session_factory):
    workshop_id, user_ids = _seed(session_factory, max_capacity=3, users=8)

    results = _race(session_factory, workshop_id, user_ids)

    assert results.count("confirmed") == 3
    assert results.count(CapacityExceeded.__name__) == 5

    db = session_factory()
    try:
        workshop = db.query(Workshop).filter(Workshop.id == workshop_id).one()
        assert workshop.current_bookings == workshop.max_capacity
        assert find_counter_drift(db) == []
    finally:
        db.close()


def test_same_user_double_submit(session_factory):
    """
    Test: the same user submitting twice at once ends with one confirmed booking
    """
    workshop_id, user_ids = _seed(session_factory, max_capacity=5, users=1)

    results = _race(session_factory, workshop_id, user_ids * 2)

    assert results.count("confirmed") == 1
    assert results.count("DuplicateBooking") == 1

    db = session_factory()
    try:
        workshop = db.query(Workshop).filter(Workshop.id == workshop_id).one()
        assert workshop.current_bookings == 1
        assert find_counter_drift(db) == []
    finally:
        db.close()


def test_cancel_races_with_new_bookings(session_factory):
    """
    Test: a holder cancelling while others book never loses a counter update
    """
    workshop_id, user_ids = _seed(session_factory, max_capacity=2, users=5)
    holder_id, other_holder_id, *racer_ids = user_ids

    db = session_factory()
    try:
        held = booking_ledger.create_booking(db, user_id=holder_id, workshop_id=workshop_id)
        held_id = held.id
        booking_ledger.create_booking(db, user_id=other_holder_id, workshop_id=workshop_id)
    finally:
        db.close()

    barrier = threading.Barrier(1 + len(racer_ids))

    def cancel():
        db = session_factory()
        try:
            holder = db.query(User).filter(User.id == holder_id).one()
            barrier.wait()
            booking_ledger.cancel_booking(db, booking_id=held_id, requesting_user=holder)
            return "cancelled"
        except BookingError as exc:
            return type(exc).__name__
        finally:
            db.close()

    def book(user_id):
        db = session_factory()
        try:
            barrier.wait()
            booking_ledger.create_booking(db, user_id=user_id, workshop_id=workshop_id)
            return "confirmed"
        except BookingError as exc:
            return type(exc).__name__
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=1 + len(racer_ids)) as pool:
        cancel_future = pool.submit(cancel)
        booking_futures = [pool.submit(book, user_id) for user_id in racer_ids]
        cancel_result = cancel_future.result()
        booking_results = [f.result() for f in booking_futures]

    assert cancel_result == "cancelled"
    assert booking_results.count("confirmed") <= 1
    assert set(booking_results) <= {"confirmed", CapacityExceeded.__name__}

    db = session_factory()
    try:
        workshop = db.query(Workshop).filter(Workshop.id == workshop_id).one()
        confirmed = (
            db.query(Booking)
            .filter(
                Booking.workshop_id == workshop_id,
                Booking.status == BookingStatus.CONFIRMED,
            )
            .count()
        )
        assert workshop.current_bookings <= workshop.max_capacity
        assert workshop.current_bookings == confirmed
        assert confirmed == 1 + booking_results.count("confirmed")
        assert find_counter_drift(db) == []
    finally:
        db.close()
