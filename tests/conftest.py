"""
Shared pytest configuration
"""
import os

# Must be set before the application modules read them
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from datetime import date, time, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from workshop_booking.database import Base, get_db

# Import every model so SQLAlchemy can resolve the relationships
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.models.booking import Booking
from workshop_booking.enums.statuses import WorkshopStatus
from workshop_booking.enums.user_role import UserRole
from workshop_booking.services.auth import create_token_for_user


# In-memory database for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Create the test database and drop it afterwards"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def override_get_db(db):
    """get_db override for tests"""
    def _get_db():
        try:
            yield db
        finally:
            pass
    return _get_db


@pytest.fixture
def client(override_get_db):
    from workshop_booking.main import app

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create_user(db, email, first_name, role=UserRole.USER):
    user = User(
        email=email,
        hashed_password="hashed",
        first_name=first_name,
        last_name="Tester",
        phone=None,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def sample_user(db):
    return _create_user(db, "ada@example.com", "Ada")


@pytest.fixture
def other_user(db):
    return _create_user(db, "grace@example.com", "Grace")


@pytest.fixture
def admin_user(db):
    return _create_user(db, "admin@example.com", "Admin", role=UserRole.ADMIN)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make():
        counter["n"] += 1
        return _create_user(db, f"user{counter['n']}@example.com", f"User{counter['n']}")
    return _make


@pytest.fixture
def make_workshop(db):
    """Workshop factory; by default an active workshop tomorrow at 10:00"""
    def _make(
        days_ahead=1,
        max_capacity=5,
        current_bookings=0,
        status=WorkshopStatus.ACTIVE,
        title="Intro to Pottery",
        category="Arts",
        price=Decimal("25.00"),
        start_time=time(10, 0),
        end_time=time(12, 0),
    ):
        workshop = Workshop(
            title=title,
            description="Hands-on introduction to wheel throwing.",
            instructor="Maria Lopez",
            location="Studio 4",
            date=date.today() + timedelta(days=days_ahead),
            start_time=start_time,
            end_time=end_time,
            price=price,
            max_capacity=max_capacity,
            current_bookings=current_bookings,
            status=status,
            category=category,
        )
        db.add(workshop)
        db.commit()
        db.refresh(workshop)
        return workshop
    return _make


@pytest.fixture
def sample_workshop(make_workshop):
    return make_workshop()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_token_for_user(user)}"}
    return _headers
