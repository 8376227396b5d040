from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from workshop_booking.enums.statuses import WorkshopStatus

from workshop_booking.database import Base


class Workshop(Base):
    __tablename__ = "workshops"
    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="ck_workshops_max_capacity_positive"),
        CheckConstraint("price >= 0", name="ck_workshops_price_non_negative"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_capacity",
            name="ck_workshops_current_bookings_within_capacity",
        ),
        {"extend_existing": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    instructor = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    max_capacity = Column(Integer, nullable=False)
    # Denormalized count of confirmed bookings, only written by the booking ledger
    current_bookings = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(WorkshopStatus, values_callable=lambda e: [m.value for m in e]),
        default=WorkshopStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    category = Column(String(100), nullable=True, index=True)
    image_url = Column(String(500), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bookings = relationship("Booking", back_populates="workshop")

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def available_seats(self) -> int:
        return self.max_capacity - self.current_bookings

    @property
    def is_full(self) -> bool:
        return self.current_bookings >= self.max_capacity

    def has_started(self, now: datetime = None) -> bool:
        return self.start_datetime <= (now or datetime.now())
