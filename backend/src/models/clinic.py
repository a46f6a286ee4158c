"""
Clinic model representing a tenant of the scheduling system.

A clinic is the top-level entity that owns professionals (through
UserClinicAssociation), contacts and appointments. Each clinic carries its own
scheduling rules (working days, working hours, lunch break) in the JSON
`settings` column and its own IANA timezone.
"""

from datetime import datetime
from typing import List, Dict, Any

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import String, TIMESTAMP, Boolean, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.config import DEFAULT_CLINIC_TIMEZONE
from core.constants import (
    MAX_STRING_LENGTH,
    WEEKDAY_NAMES,
    DEFAULT_WORKING_DAYS,
    DEFAULT_WORK_START,
    DEFAULT_WORK_END,
    DEFAULT_LUNCH_START,
    DEFAULT_LUNCH_END,
)
from core.database import Base
from utils.datetime_utils import parse_time_string


def _normalize_hhmm(value: str) -> str:
    return parse_time_string(value).strftime('%H:%M')


# Settings schema validation models
class SchedulingSettings(BaseModel):
    """Schema for clinic scheduling rules."""
    working_days: List[str] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS),
        description="Weekday names on which the clinic accepts appointments (e.g. 'monday')"
    )
    work_start: str = Field(default=DEFAULT_WORK_START, description="Opening time (24-hour format HH:MM, clinic-local)")
    work_end: str = Field(default=DEFAULT_WORK_END, description="Closing time (24-hour format HH:MM, clinic-local)")
    has_lunch_break: bool = Field(default=True, description="Whether the lunch interval blocks every professional's calendar")
    lunch_start: str = Field(default=DEFAULT_LUNCH_START, description="Lunch break start (HH:MM)")
    lunch_end: str = Field(default=DEFAULT_LUNCH_END, description="Lunch break end (HH:MM)")

    @model_validator(mode='before')
    @classmethod
    def migrate_legacy_keys(cls, data: Any) -> Any:
        """
        Accept legacy key names written by older clients.

        'working_hours_start'/'working_hours_end' map to 'work_start'/'work_end'.
        """
        if isinstance(data, dict):
            data = dict(data)  # type: ignore[reportUnknownArgumentType]
            if 'working_hours_start' in data and 'work_start' not in data:
                data['work_start'] = data.pop('working_hours_start')
            if 'working_hours_end' in data and 'work_end' not in data:
                data['work_end'] = data.pop('working_hours_end')
        return data  # type: ignore[reportUnknownVariableType]

    @field_validator('working_days')
    @classmethod
    def validate_working_days(cls, v: List[str]) -> List[str]:
        """Normalize weekday names to lowercase and reject unknown names."""
        normalized = [day.strip().lower() for day in v]
        unknown = [day for day in normalized if day not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"Unknown weekday name(s): {', '.join(unknown)}")
        return [day for day in WEEKDAY_NAMES if day in normalized]

    @field_validator('work_start', 'work_end', 'lunch_start', 'lunch_end')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        """Validate that time is in HH:MM format."""
        return _normalize_hhmm(v)


class ClinicSettings(BaseModel):
    """Schema for all clinic settings."""
    scheduling_settings: SchedulingSettings = Field(default_factory=SchedulingSettings)


class Clinic(Base):
    """
    Clinic entity representing a tenant with its own scheduling rules.

    Scheduling rules are read-only to the scheduling engine; they are edited
    by clinic administration and validated into a ClinicSchedule on every read.
    """

    __tablename__ = "clinics"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the clinic."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Human-readable name of the clinic."""

    timezone: Mapped[str] = mapped_column(String(64), default=DEFAULT_CLINIC_TIMEZONE)
    """IANA timezone identifier; working hours are expressed in this timezone."""

    settings: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    """
    JSON settings validated by ClinicSettings.

    Example:
    {
        "scheduling_settings": {
            "working_days": ["monday", "tuesday", "thursday", "friday"],
            "work_start": "08:00",
            "work_end": "18:00",
            "has_lunch_break": true,
            "lunch_start": "12:00",
            "lunch_end": "13:00"
        }
    }
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    """
    Whether this clinic is active and can accept new appointments.

    Inactive clinics are reported as not found by the scheduling engine.
    """

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    user_associations = relationship(
        "UserClinicAssociation",
        back_populates="clinic",
        cascade="all, delete-orphan"
    )
    """Professionals working at this clinic."""

    contacts = relationship("Contact", back_populates="clinic", cascade="all, delete-orphan")
    """Contacts (patients) registered with this clinic."""

    appointments = relationship("Appointment", back_populates="clinic")
    """Appointments booked at this clinic."""

    def get_validated_settings(self) -> ClinicSettings:
        """Get settings with schema validation."""
        return ClinicSettings.model_validate(self.settings or {})

    def set_validated_settings(self, settings: ClinicSettings):
        """Set settings with schema validation."""
        self.settings = settings.model_dump()

    def __repr__(self) -> str:
        return f"<Clinic(id={self.id}, name='{self.name}')>"
