"""
Contact model representing the people appointments are booked for.

Each contact belongs to exactly one clinic. The scheduling engine only needs a
contact's identity; conversation and messaging data live outside this service.
"""

from sqlalchemy import String, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional

from core.database import Base


class Contact(Base):
    """Contact (patient) registered with a clinic."""

    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id", ondelete="CASCADE"))
    """Reference to the clinic this contact belongs to."""

    full_name: Mapped[str] = mapped_column(String(255))

    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    clinic = relationship("Clinic", back_populates="contacts")
    appointments = relationship("Appointment", back_populates="contact")

    __table_args__ = (
        Index('idx_contacts_clinic', 'clinic_id'),
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, clinic_id={self.clinic_id}, full_name='{self.full_name}')>"
