from sqlalchemy.orm import Session
import logging
import os

from workshop_booking.enums.user_role import UserRole
from workshop_booking.models.user import User
from workshop_booking.services.auth import get_password_hash

logger = logging.getLogger(__name__)


def create_initial_admin(db: Session):
    """
    Creates the bootstrap administrator from INITIAL_ADMIN_EMAIL and
    INITIAL_ADMIN_PASSWORD if the users table is empty.
    """
    email = os.getenv("INITIAL_ADMIN_EMAIL")
    password = os.getenv("INITIAL_ADMIN_PASSWORD")
    if not email or not password:
        logger.info("INITIAL_ADMIN_EMAIL/INITIAL_ADMIN_PASSWORD not set, skipping admin bootstrap")
        return None

    if db.query(User).count() > 0:
        logger.info("Users already exist, initial admin not created")
        return None

    admin = User(
        email=email.strip().lower(),
        hashed_password=get_password_hash(password),
        first_name=os.getenv("INITIAL_ADMIN_FIRST_NAME", "Admin"),
        last_name=os.getenv("INITIAL_ADMIN_LAST_NAME", "User"),
        role=UserRole.ADMIN,
    )
    db.add(admin)
    db.commit()
    logger.info("Initial admin created: %s", admin.email)
    return admin
