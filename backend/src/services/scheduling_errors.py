"""
Error taxonomy for the scheduling engine.

Configuration and not-found errors abort a whole query or command. Rule and
conflict errors (subclasses of BookingRejectedError) reject a single candidate:
the slot finder drops the slot, the booking coordinator rejects the booking and
surfaces the specific kind together with the conflicting entity.
PartialExternalData is a warning value attached to otherwise successful results.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from shared_types.scheduling import CandidateSlot, ConflictDetail, Interval


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""

    kind = "scheduling_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "type": self.kind}


class ConfigError(SchedulingError):
    """A clinic's scheduling settings violate an invariant; the clinic has no availability."""

    kind = "config_error"
    status_code = 422

    def __init__(self, clinic_id: Optional[int], reason: str) -> None:
        super().__init__(f"Invalid scheduling configuration for clinic {clinic_id}: {reason}")
        self.clinic_id = clinic_id
        self.reason = reason


class NotFoundError(SchedulingError):
    """Unknown clinic, professional, contact or appointment."""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class BookingRejectedError(SchedulingError):
    """
    A candidate interval failed a rule or conflict check.

    Attributes:
        candidate: The interval that was rejected
        conflict: The busy block it collided with, when there is one
        suggested_slots: Alternative free slots, filled in by the booking coordinator
    """

    kind = "booking_rejected"
    status_code = 409

    def __init__(
        self,
        message: str,
        candidate: Optional["Interval"] = None,
        conflict: Optional["ConflictDetail"] = None,
    ) -> None:
        super().__init__(message)
        self.candidate = candidate
        self.conflict = conflict
        self.suggested_slots: List["CandidateSlot"] = []

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["conflict"] = self.conflict.to_dict() if self.conflict else None
        result["suggested_slots"] = [slot.to_dict() for slot in self.suggested_slots]
        return result


class NotWorkingDay(BookingRejectedError):
    kind = "not_working_day"


class OutsideWorkingHours(BookingRejectedError):
    kind = "outside_working_hours"


class LunchBreakConflict(BookingRejectedError):
    kind = "lunch_break_conflict"


class AppointmentConflict(BookingRejectedError):
    kind = "appointment_conflict"


class ExternalCalendarConflict(BookingRejectedError):
    kind = "external_calendar_conflict"


@dataclass(frozen=True)
class PartialExternalData:
    """
    Warning: external calendar data could not be loaded for a professional.

    Results carrying this warning were computed from internal appointments only.
    """
    professional_id: int
    reason: str

    kind = "partial_external_data"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "professional_id": self.professional_id,
            "detail": self.reason,
        }
