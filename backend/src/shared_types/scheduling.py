"""
Shared types for the scheduling engine.

Value objects passed between the rule provider, conflict detector, slot finder
and booking coordinator. All datetimes here are naive and represent
clinic-local wall-clock time; `Interval.as_clinic_local` and
`AppointmentInterval.from_model` convert aware values into it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Tuple
from zoneinfo import ZoneInfo

from core.constants import WEEKDAY_NAMES
from services.scheduling_errors import ConfigError
from utils.datetime_utils import format_time, get_timezone, to_clinic_local

if TYPE_CHECKING:
    from models.appointment import Appointment
    from services.scheduling_errors import PartialExternalData


ConflictType = Literal["lunch", "appointment", "external"]

ACTIVE_APPOINTMENT_STATUSES = ("scheduled", "confirmed")
"""Statuses that occupy a professional's time and take part in conflict checks."""

APPOINTMENT_STATUSES = ("scheduled", "confirmed", "completed", "cancelled", "no_show")


@dataclass(frozen=True)
class Interval:
    """Half-open time interval [start, end)."""
    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "Interval":
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: "Interval") -> bool:
        """
        Check whether two intervals share a positive amount of time.

        Back-to-back intervals (self.end == other.start) and zero-length
        intervals never overlap.
        """
        if self.is_empty or other.is_empty:
            return False
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def as_clinic_local(self, tz: ZoneInfo) -> "Interval":
        """The same interval in naive clinic-local time (naive bounds are kept as they are)."""
        return Interval(to_clinic_local(self.start, tz), to_clinic_local(self.end, tz))


@dataclass(frozen=True)
class ClinicSchedule:
    """
    Validated scheduling configuration for a clinic.

    Built once at the boundary from the clinic's settings; construction raises
    ConfigError when an invariant is violated so malformed settings never reach
    slot math.
    """
    clinic_id: int
    working_days: Tuple[str, ...]
    work_start: time
    work_end: time
    timezone: str
    has_lunch_break: bool = False
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None

    def __post_init__(self) -> None:
        days = [str(day).strip().lower() for day in self.working_days]
        unknown = [day for day in days if day not in WEEKDAY_NAMES]
        if unknown:
            raise ConfigError(self.clinic_id, f"Unknown working day(s): {', '.join(unknown)}")
        # Store in calendar order without duplicates
        object.__setattr__(self, "working_days", tuple(d for d in WEEKDAY_NAMES if d in days))

        if self.work_start >= self.work_end:
            raise ConfigError(
                self.clinic_id,
                f"Working hours start ({format_time(self.work_start)}) must be before end ({format_time(self.work_end)})"
            )

        if self.has_lunch_break:
            if self.lunch_start is None or self.lunch_end is None:
                raise ConfigError(self.clinic_id, "Lunch break is enabled but lunch start/end are missing")
            if self.lunch_start >= self.lunch_end:
                raise ConfigError(self.clinic_id, "Lunch break start must be before lunch break end")
            if self.lunch_start < self.work_start or self.lunch_end > self.work_end:
                raise ConfigError(self.clinic_id, "Lunch break must lie within working hours")

        try:
            get_timezone(self.timezone)
        except ValueError as e:
            raise ConfigError(self.clinic_id, str(e)) from e

    @property
    def tzinfo(self) -> ZoneInfo:
        return get_timezone(self.timezone)

    def is_working_weekday(self, day: date) -> bool:
        return WEEKDAY_NAMES[day.weekday()] in self.working_days

    def working_window(
        self,
        day: date,
        start_override: Optional[time] = None,
        end_override: Optional[time] = None,
    ) -> Interval:
        """Working hours for a day, optionally replaced by an override."""
        start = start_override if start_override is not None else self.work_start
        end = end_override if end_override is not None else self.work_end
        return Interval(datetime.combine(day, start), datetime.combine(day, end))

    def lunch_interval(self, day: date) -> Optional[Interval]:
        if not self.has_lunch_break or self.lunch_start is None or self.lunch_end is None:
            return None
        return Interval(datetime.combine(day, self.lunch_start), datetime.combine(day, self.lunch_end))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clinic_id": self.clinic_id,
            "working_days": list(self.working_days),
            "work_start": format_time(self.work_start),
            "work_end": format_time(self.work_end),
            "has_lunch_break": self.has_lunch_break,
            "lunch_start": format_time(self.lunch_start) if self.lunch_start else None,
            "lunch_end": format_time(self.lunch_end) if self.lunch_end else None,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class AppointmentInterval:
    """Read-only projection of a booked appointment used for conflict checks."""
    id: int
    clinic_id: int
    professional_id: int
    contact_id: int
    start: datetime
    duration_minutes: int
    status: str
    title: Optional[str] = None

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATUSES

    @classmethod
    def from_model(cls, appointment: "Appointment", tz: ZoneInfo) -> "AppointmentInterval":
        """Project a stored appointment into the clinic-local time of `tz`."""
        return cls(
            id=appointment.id,
            clinic_id=appointment.clinic_id,
            professional_id=appointment.user_id,
            contact_id=appointment.contact_id,
            start=to_clinic_local(appointment.start_time, tz),
            duration_minutes=appointment.duration_minutes,
            status=appointment.status,
            title=appointment.title,
        )


@dataclass(frozen=True)
class ExternalBusyBlock:
    """A third-party calendar event that blocks a professional's time."""
    professional_id: int
    start: datetime
    end: datetime
    title: Optional[str] = None
    source: str = "google_calendar"
    external_id: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass(frozen=True)
class ConflictDetail:
    """
    Describes a busy block that a candidate interval collides with.

    Carries the descriptive fields needed for user-facing messages.
    """
    type: ConflictType
    start: datetime
    end: datetime
    title: Optional[str] = None
    appointment_id: Optional[int] = None
    external_id: Optional[str] = None
    source: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "title": self.title,
            "appointment_id": self.appointment_id,
            "external_id": self.external_id,
            "source": self.source,
        }


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a single conflict check."""
    conflict: Optional[ConflictDetail] = None
    partial: bool = False

    @property
    def has_conflict(self) -> bool:
        return self.conflict is not None

    @property
    def conflict_type(self) -> Optional[ConflictType]:
        return self.conflict.type if self.conflict else None


@dataclass(frozen=True)
class CandidateSlot:
    """A bookable interval produced fresh for each availability query."""
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
        }


@dataclass(frozen=True)
class AvailabilityQuery:
    """
    Request for free slots of a professional on one day.

    Raises:
        ValueError: If duration is not positive or the working-hours override is invalid
    """
    clinic_id: int
    professional_id: int
    day: date
    duration_minutes: int
    work_start_override: Optional[time] = None
    work_end_override: Optional[time] = None
    exclude_appointment_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ValueError("Duration must be greater than zero")
        if (self.work_start_override is None) != (self.work_end_override is None):
            raise ValueError("Working hours override requires both start and end")
        if (
            self.work_start_override is not None
            and self.work_end_override is not None
            and self.work_start_override >= self.work_end_override
        ):
            raise ValueError("Working hours override start must be before end")


@dataclass
class AvailabilityResult:
    """Free slots for a query plus the busy blocks that shaped them."""
    query: AvailabilityQuery
    schedule: ClinicSchedule
    slots: List[CandidateSlot] = field(default_factory=list)
    busy_blocks: List[ConflictDetail] = field(default_factory=list)
    warnings: List["PartialExternalData"] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)

    @property
    def timezone(self) -> str:
        """IANA timezone the slots and busy blocks are expressed in."""
        return self.schedule.timezone


class BookingState(str, Enum):
    """Lifecycle of a booking attempt."""
    PROPOSED = "proposed"
    VALIDATED = "validated"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class BookingResult:
    """Committed appointment plus any non-fatal warnings raised while validating it."""
    appointment: "Appointment"
    state: BookingState = BookingState.COMMITTED
    warnings: List["PartialExternalData"] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)
