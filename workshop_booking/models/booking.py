from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime
from workshop_booking.enums.statuses import BookingStatus

from workshop_booking.database import Base


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one confirmed booking per user and workshop
        Index(
            "uq_bookings_user_workshop_confirmed",
            "user_id",
            "workshop_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    workshop_id = Column(
        Integer, ForeignKey("workshops.id"), nullable=False, index=True
    )
    booking_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(
        Enum(BookingStatus, values_callable=lambda e: [m.value for m in e]),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True,
    )
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="bookings")
    workshop = relationship("Workshop", back_populates="bookings")
