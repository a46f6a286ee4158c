"""
User model for clinic personnel.

Professionals whose calendars are scheduled are users. Clinic membership,
roles and clinic-specific display names live in UserClinicAssociation, so one
professional can work for several clinics.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, Text, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class User(Base):
    """User model for clinic personnel (professionals, admins)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True)  # Globally unique (not per-clinic)

    # Google Calendar integration (external busy blocks)
    gcal_credentials: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Authorized-user OAuth2 credentials JSON for the professional's Google Calendar."""

    gcal_calendar_id: Mapped[str] = mapped_column(String(255), default="primary")
    gcal_sync_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    """When enabled, the professional's Google Calendar events block availability."""

    # Metadata
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    clinic_associations = relationship(
        "UserClinicAssociation",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    """User-clinic associations for multi-clinic support. Roles and names are clinic-specific."""

    appointments = relationship("Appointment", back_populates="professional")

    @property
    def has_external_calendar(self) -> bool:
        return bool(self.gcal_sync_enabled and self.gcal_credentials)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
