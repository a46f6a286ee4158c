"""Request/response models for the scheduling endpoints."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from core.constants import (
    MAX_APPOINTMENT_DURATION_MINUTES,
    MAX_NOTES_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_APPOINTMENT_DURATION_MINUTES,
)
from models import Appointment
from services.scheduling_errors import PartialExternalData
from shared_types.scheduling import CandidateSlot, ClinicSchedule, ConflictDetail


class ScheduleResponse(BaseModel):
    """Response model for a clinic's validated scheduling rules."""
    clinic_id: int
    working_days: List[str]
    work_start: str  # Format: "HH:MM"
    work_end: str  # Format: "HH:MM"
    has_lunch_break: bool
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None
    timezone: str

    @classmethod
    def from_schedule(cls, schedule: ClinicSchedule) -> "ScheduleResponse":
        return cls(**schedule.to_dict())


class SlotResponse(BaseModel):
    """A free slot in clinic-local time."""
    start: datetime
    end: datetime
    duration_minutes: int

    @classmethod
    def from_slot(cls, slot: CandidateSlot) -> "SlotResponse":
        return cls(start=slot.start, end=slot.end, duration_minutes=slot.duration_minutes)


class BusyBlockResponse(BaseModel):
    """A busy block (lunch, appointment or external event) in clinic-local time."""
    type: Literal["lunch", "appointment", "external"]
    start: datetime
    end: datetime
    title: Optional[str] = None
    appointment_id: Optional[int] = None
    external_id: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_detail(cls, detail: ConflictDetail) -> "BusyBlockResponse":
        return cls(
            type=detail.type,
            start=detail.start,
            end=detail.end,
            title=detail.title,
            appointment_id=detail.appointment_id,
            external_id=detail.external_id,
            source=detail.source,
        )


class WarningResponse(BaseModel):
    """Non-fatal warning attached to a result."""
    type: str
    professional_id: int
    detail: str

    @classmethod
    def from_warning(cls, warning: PartialExternalData) -> "WarningResponse":
        return cls(**warning.to_dict())


class AvailabilityResponse(BaseModel):
    """Response model for an availability query."""
    date: str  # Format: "YYYY-MM-DD"
    professional_id: int
    duration_minutes: int
    timezone: str
    slots: List[SlotResponse]
    slots_by_period: Dict[str, List[SlotResponse]]
    busy_blocks: List[BusyBlockResponse]
    partial: bool = False
    warnings: List[WarningResponse] = []


class AppointmentCreateRequest(BaseModel):
    """Request model for booking an appointment."""
    professional_id: int
    contact_id: int
    start_time: datetime = Field(description="Start time; naive values are clinic-local")
    duration_minutes: int = Field(ge=MIN_APPOINTMENT_DURATION_MINUTES, le=MAX_APPOINTMENT_DURATION_MINUTES)
    title: Optional[str] = Field(default=None, max_length=MAX_TITLE_LENGTH)
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class AppointmentRescheduleRequest(BaseModel):
    """Request model for moving an appointment."""
    start_time: datetime = Field(description="New start time; naive values are clinic-local")
    duration_minutes: Optional[int] = Field(
        default=None,
        ge=MIN_APPOINTMENT_DURATION_MINUTES,
        le=MAX_APPOINTMENT_DURATION_MINUTES,
        description="New duration; defaults to the current duration",
    )


class AppointmentCancelRequest(BaseModel):
    """Request model for cancelling an appointment."""
    cancelled_by: Literal["contact", "clinic"] = "clinic"
    reason: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class AppointmentStatusUpdateRequest(BaseModel):
    """Request model for changing an appointment's status."""
    status: Literal["scheduled", "confirmed", "completed", "cancelled", "no_show"]


class AppointmentResponse(BaseModel):
    """Response model for an appointment. Start and end are clinic-local."""
    id: int
    clinic_id: int
    professional_id: int
    contact_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    title: Optional[str] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_model(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            clinic_id=appointment.clinic_id,
            professional_id=appointment.user_id,
            contact_id=appointment.contact_id,
            start_time=appointment.local_start_time,
            end_time=appointment.local_end_time,
            duration_minutes=appointment.duration_minutes,
            status=appointment.status,
            title=appointment.title,
            notes=appointment.notes,
            cancelled_at=appointment.cancelled_at,
            cancelled_by=appointment.cancelled_by,
            cancellation_reason=appointment.cancellation_reason,
        )


class BookingResponse(BaseModel):
    """Response model for a committed booking or reschedule."""
    appointment: AppointmentResponse
    state: str
    partial: bool = False
    warnings: List[WarningResponse] = []


class AppointmentListResponse(BaseModel):
    """Response model for appointment listing."""
    appointments: List[AppointmentResponse]
    total: int
    limit: int
    offset: int
