"""
Appointment model representing bookings between contacts and professionals.

Appointments are the only mutable shared resource of the scheduling engine.
They are never deleted: cancellation is a status change that frees the slot.
Start/end are stored as UTC instants; callers convert to and from clinic-local
time with the clinic's timezone.

The partial unique index on (user_id, start_time) over active statuses is the
database-level guard against two concurrent bookings of the same slot.
"""

from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import String, ForeignKey, Index, TIMESTAMP, Integer, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_TITLE_LENGTH, MAX_NOTES_LENGTH
from core.database import Base, UTCDateTime
from utils.datetime_utils import get_timezone, to_clinic_local


_ACTIVE_STATUS_CLAUSE = "status IN ('scheduled', 'confirmed')"


class Appointment(Base):
    """
    Appointment entity representing a booked interval on a professional's calendar.

    Status lifecycle:
    - 'scheduled': booked, not yet confirmed by the contact
    - 'confirmed': confirmed by the contact
    - 'completed': attended (terminal)
    - 'no_show': contact did not attend (terminal)
    - 'cancelled': soft-cancelled by the contact or the clinic (terminal)

    Only 'scheduled' and 'confirmed' appointments block availability.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id", ondelete="CASCADE"))
    """Reference to the clinic this appointment belongs to."""

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    """Reference to the professional whose calendar this appointment occupies."""

    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id"))
    """Reference to the contact the appointment is booked for."""

    start_time: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True))
    """Start of the appointment (UTC)."""

    end_time: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True))
    """End of the appointment (UTC, exclusive)."""

    duration_minutes: Mapped[int] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    """Current status. Valid values: 'scheduled', 'confirmed', 'completed', 'cancelled', 'no_show'."""

    title: Mapped[Optional[str]] = mapped_column(String(MAX_TITLE_LENGTH), nullable=True)
    """Short description shown on calendars and in conflict messages."""

    notes: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    cancelled_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """Who cancelled the appointment: 'contact' or 'clinic'."""

    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    clinic = relationship("Clinic", back_populates="appointments")
    professional = relationship("User", back_populates="appointments")
    contact = relationship("Contact", back_populates="appointments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'completed', 'cancelled', 'no_show')",
            name='check_valid_appointment_status'
        ),
        CheckConstraint('duration_minutes > 0', name='check_positive_duration'),
        CheckConstraint('end_time > start_time', name='check_valid_time_range'),
        # One active appointment per professional per start time
        Index(
            'uq_appointments_professional_start_active',
            'user_id', 'start_time',
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_CLAUSE),
            sqlite_where=text(_ACTIVE_STATUS_CLAUSE),
        ),
        Index('idx_appointments_user_start', 'user_id', 'start_time'),
        Index('idx_appointments_clinic_start', 'clinic_id', 'start_time'),
        Index('idx_appointments_contact', 'contact_id'),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ('scheduled', 'confirmed')

    @property
    def local_start_time(self) -> datetime:
        """Start in the clinic's wall-clock time (naive)."""
        return to_clinic_local(self.start_time, get_timezone(self.clinic.timezone))

    @property
    def local_end_time(self) -> datetime:
        """End in the clinic's wall-clock time (naive)."""
        return to_clinic_local(self.end_time, get_timezone(self.clinic.timezone))

    def reschedule_to(self, start: datetime, duration_minutes: int) -> None:
        """Move the appointment to a UTC start, keeping end_time and duration consistent."""
        self.start_time = start
        self.duration_minutes = duration_minutes
        self.end_time = start + timedelta(minutes=duration_minutes)

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, user_id={self.user_id}, "
            f"start_time={self.start_time}, status='{self.status}')>"
        )
