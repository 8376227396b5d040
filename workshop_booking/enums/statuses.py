from enum import Enum


class WorkshopStatus(str, Enum):
    """Lifecycle of a workshop, managed by administrators"""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingStatus(str, Enum):
    """Only CONFIRMED bookings count against a workshop's capacity"""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
