from workshop_booking.models.booking import Booking
from workshop_booking.models.user import User


def is_admin(user: User) -> bool:
    return user is not None and user.is_admin


def owns(user: User, booking: Booking) -> bool:
    return user is not None and booking.user_id == user.id


def can_manage_booking(user: User, booking: Booking) -> bool:
    """Owners and administrators may cancel a booking."""
    return is_admin(user) or owns(user, booking)
