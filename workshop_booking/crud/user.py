from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from workshop_booking.models.user import User
from workshop_booking.enums.user_role import UserRole
from workshop_booking.schemas.user import UserCreate, UserUpdate
from workshop_booking.services.auth import get_password_hash

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, user: UserCreate, role: UserRole = UserRole.USER) -> User:
    email = user.email.strip().lower()
    db_user = User(
        email=email,
        hashed_password=get_password_hash(user.password),
        first_name=user.first_name.strip(),
        last_name=user.last_name.strip(),
        phone=user.phone,
        role=role,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with another registration for the same email
        db.rollback()
        logger.info("Registration rejected: %s already exists", email)
        raise ValueError("User with this email already exists")
    db.refresh(db_user)
    return db_user


def update_user(db: Session, db_user: User, user: UserUpdate) -> User:
    update_data = user.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_user, field, value)

    db.commit()
    db.refresh(db_user)
    return db_user
