from workshop_booking.models.user import User, UserRole
from workshop_booking.models.workshop import Workshop, WorkshopStatus
from workshop_booking.models.booking import Booking, BookingStatus

# This makes the models directory a Python package and ensures all models are loaded
