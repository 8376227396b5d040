"""
Business-rule errors raised by the booking ledger.

Each error carries the HTTP status and the stable message the API returns
for it; ``main.py`` renders them in the standard response envelope.
"""


class BookingError(Exception):
    status_code = 400
    message = "Booking request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class NotFound(BookingError):
    status_code = 404
    message = "Resource not found"


class PastEvent(BookingError):
    message = "Workshop has already started"


class DuplicateBooking(BookingError):
    message = "You have already booked this workshop"


class CapacityExceeded(BookingError):
    message = "Workshop is fully booked"


class Forbidden(BookingError):
    status_code = 403
    message = "You can only manage your own bookings"


class AlreadyCancelled(BookingError):
    message = "Booking is already cancelled"


class InvalidTransition(BookingError):
    message = "Booking status cannot be changed"


class Internal(BookingError):
    status_code = 500
    message = "Internal server error"
