"""
Booking coordinator.

Validates and commits appointment creation and rescheduling. Each booking
moves through proposed -> validated -> committed, or proposed -> rejected.

Validation repeats the slot finder's filters (working day, working hours,
conflicts) at commit time inside the same transaction that writes the
appointment, so a slot offered earlier and taken in the meantime is rejected
rather than double-booked. Commits for one professional are serialized three
ways:

- an in-process lock per professional
- a row lock on the professional's clinic association (databases with
  SELECT ... FOR UPDATE)
- the partial unique index on (user_id, start_time) over active appointments
"""

import logging
import threading
from datetime import date
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import DEFAULT_APPOINTMENT_LIST_LIMIT
from models import Appointment
from services.appointment_repository import AppointmentRepository
from services.clinic_rule_provider import ClinicRuleProvider
from services.conflict_detector import ConflictDetector, appointment_detail
from services.scheduling_errors import (
    AppointmentConflict,
    BookingRejectedError,
    ExternalCalendarConflict,
    LunchBreakConflict,
    NotWorkingDay,
    OutsideWorkingHours,
    PartialExternalData,
    SchedulingError,
)
from services.slot_finder import SlotFinder
from shared_types.scheduling import (
    AppointmentInterval,
    BookingResult,
    BookingState,
    ClinicSchedule,
    ConflictDetail,
    Interval,
)
from utils.datetime_utils import format_time, utc_now

logger = logging.getLogger(__name__)

CANCELLED_BY_VALUES = ("contact", "clinic")

# Allowed status changes; anything not listed is rejected
STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "scheduled": ("confirmed", "completed", "no_show", "cancelled"),
    "confirmed": ("completed", "no_show", "cancelled"),
    "completed": (),
    "no_show": (),
    "cancelled": (),
}

_professional_locks: Dict[int, threading.Lock] = {}
_professional_locks_guard = threading.Lock()


def professional_lock(professional_id: int) -> threading.Lock:
    """Get the process-wide lock serializing commits for one professional."""
    with _professional_locks_guard:
        lock = _professional_locks.get(professional_id)
        if lock is None:
            lock = threading.Lock()
            _professional_locks[professional_id] = lock
        return lock


def rejection_for_conflict(conflict: ConflictDetail, candidate: Interval) -> BookingRejectedError:
    """Map a detected conflict to the booking error surfaced to callers."""
    span = f"{format_time(conflict.start.time())}-{format_time(conflict.end.time())}"
    if conflict.type == "lunch":
        return LunchBreakConflict(f"Requested time overlaps the lunch break ({span})", candidate, conflict)
    if conflict.type == "appointment":
        return AppointmentConflict(
            f"Requested time overlaps appointment {conflict.appointment_id} ({span})", candidate, conflict
        )
    return ExternalCalendarConflict(
        f"Requested time overlaps an external calendar event '{conflict.title}' ({span})", candidate, conflict
    )


class BookingCoordinator:
    """Commits bookings and reschedules after re-validating them at commit time."""

    def __init__(
        self,
        db: Session,
        rule_provider: ClinicRuleProvider,
        conflict_detector: ConflictDetector,
        slot_finder: SlotFinder,
        repository: AppointmentRepository,
    ) -> None:
        self.db = db
        self.rule_provider = rule_provider
        self.conflict_detector = conflict_detector
        self.slot_finder = slot_finder
        self.repository = repository

    def validate_candidate(
        self,
        candidate: Interval,
        professional_id: int,
        clinic_id: int,
        exclude_appointment_id: Optional[int] = None,
        schedule: Optional[ClinicSchedule] = None,
    ) -> List[PartialExternalData]:
        """
        Run the booking rules against a candidate interval, in order.

        A non-working day is reported before anything else, then working hours,
        then conflicts (lunch, appointment, external). Aware bounds are
        converted to the clinic's local time first.

        Returns:
            Warnings collected while validating (external data unavailable)

        Raises:
            ValueError: If the interval is empty
            NotFoundError: If the clinic is unknown
            ConfigError: If the clinic's schedule is malformed
            BookingRejectedError: The specific rule or conflict that failed
        """
        if candidate.is_empty:
            raise ValueError("Appointment end must be after its start")

        if schedule is None:
            schedule = self.rule_provider.get_schedule(clinic_id)
        candidate = candidate.as_clinic_local(schedule.tzinfo)

        if not ClinicRuleProvider.is_working_day_for(schedule, candidate.start):
            raise NotWorkingDay(
                f"Clinic does not work on {candidate.start.strftime('%A').lower()} {candidate.start.date().isoformat()}",
                candidate,
            )

        window = schedule.working_window(candidate.start.date())
        if not window.contains(candidate):
            raise OutsideWorkingHours(
                f"Requested time is outside working hours "
                f"({format_time(schedule.work_start)}-{format_time(schedule.work_end)})",
                candidate,
            )

        context = self.conflict_detector.load_context(schedule, professional_id, candidate, exclude_appointment_id)
        result = ConflictDetector.find_conflict(candidate, context)
        if result.conflict is not None:
            raise rejection_for_conflict(result.conflict, candidate)
        return list(context.warnings)

    def book(
        self,
        candidate: Interval,
        professional_id: int,
        clinic_id: int,
        contact_id: int,
        title: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BookingResult:
        """
        Create an appointment after validating it at commit time.

        Alternative slots for a rejected booking are computed after the
        professional's lock is released.

        Args:
            candidate: Interval to book, clinic-local or timezone-aware
            professional_id: Professional to book
            clinic_id: Clinic the appointment belongs to
            contact_id: Contact the appointment is for
            title: Optional short description
            notes: Optional notes

        Returns:
            BookingResult with the committed appointment and any warnings

        Raises:
            NotFoundError: If the clinic, professional or contact is unknown
            ConfigError: If the clinic's schedule is malformed
            NotWorkingDay, OutsideWorkingHours, LunchBreakConflict,
            AppointmentConflict, ExternalCalendarConflict: If the booking is rejected
        """
        self._log_state(BookingState.PROPOSED, "book", professional_id, candidate)

        rejection: Optional[BookingRejectedError] = None
        cause: Optional[Exception] = None
        with professional_lock(professional_id):
            try:
                self.repository.get_professional(clinic_id, professional_id, lock=True)
                self.repository.get_contact(clinic_id, contact_id)
                schedule = self.rule_provider.get_schedule(clinic_id)
                candidate = candidate.as_clinic_local(schedule.tzinfo)
                warnings = self.validate_candidate(candidate, professional_id, clinic_id, schedule=schedule)
                self._log_state(BookingState.VALIDATED, "book", professional_id, candidate)

                appointment = self.repository.insert_appointment(
                    clinic_id=clinic_id,
                    professional_id=professional_id,
                    contact_id=contact_id,
                    interval=candidate,
                    tz=schedule.tzinfo,
                    title=title,
                    notes=notes,
                )
                self.db.commit()
            except BookingRejectedError as e:
                self.db.rollback()
                rejection = e
            except IntegrityError as e:
                self.db.rollback()
                rejection = self._slot_taken(professional_id, candidate, schedule.tzinfo)
                cause = e
            except Exception:
                self.db.rollback()
                raise

        if rejection is not None:
            raise self._reject(rejection, clinic_id, professional_id, candidate) from cause

        self._log_state(BookingState.COMMITTED, "book", professional_id, candidate, appointment.id)
        return BookingResult(appointment=appointment, state=BookingState.COMMITTED, warnings=warnings)

    def reschedule(self, appointment_id: int, new_interval: Interval, clinic_id: int) -> BookingResult:
        """
        Move an appointment to a new interval, validated against current clinic rules.

        The appointment is excluded from its own conflict check, so moving it
        onto (or overlapping) its current slot succeeds. The new interval may be
        clinic-local or timezone-aware.

        Raises:
            NotFoundError: If the appointment is unknown in this clinic
            ValueError: If the appointment is no longer active
            NotWorkingDay, OutsideWorkingHours, LunchBreakConflict,
            AppointmentConflict, ExternalCalendarConflict: If the new interval is rejected
        """
        professional_id = self.repository.get_appointment(appointment_id, clinic_id).user_id
        self._log_state(BookingState.PROPOSED, "reschedule", professional_id, new_interval, appointment_id)

        rejection: Optional[BookingRejectedError] = None
        cause: Optional[Exception] = None
        with professional_lock(professional_id):
            try:
                appointment = self.repository.get_appointment(appointment_id, clinic_id, for_update=True)
                if not appointment.is_active:
                    raise ValueError(f"Appointment {appointment_id} is {appointment.status} and cannot be rescheduled")

                self.repository.get_professional(clinic_id, professional_id, lock=True)
                schedule = self.rule_provider.get_schedule(clinic_id)
                new_interval = new_interval.as_clinic_local(schedule.tzinfo)
                warnings = self.validate_candidate(
                    new_interval, professional_id, clinic_id, exclude_appointment_id=appointment_id, schedule=schedule
                )
                self._log_state(BookingState.VALIDATED, "reschedule", professional_id, new_interval, appointment_id)

                self.repository.update_appointment(appointment, new_interval, schedule.tzinfo)
                self.db.commit()
            except BookingRejectedError as e:
                self.db.rollback()
                rejection = e
            except IntegrityError as e:
                self.db.rollback()
                rejection = self._slot_taken(professional_id, new_interval, schedule.tzinfo, appointment_id)
                cause = e
            except OperationalError as e:
                # Row locked by a concurrent modification (NOWAIT)
                self.db.rollback()
                logger.warning(f"Appointment {appointment_id} is locked by another transaction: {e}")
                raise AppointmentConflict(
                    f"Appointment {appointment_id} is being modified by another request", new_interval
                ) from e
            except Exception:
                self.db.rollback()
                raise

        if rejection is not None:
            raise self._reject(rejection, clinic_id, professional_id, new_interval, appointment_id) from cause

        self._log_state(BookingState.COMMITTED, "reschedule", professional_id, new_interval, appointment_id)
        return BookingResult(appointment=appointment, state=BookingState.COMMITTED, warnings=warnings)

    def cancel(
        self,
        appointment_id: int,
        clinic_id: int,
        cancelled_by: str = "clinic",
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Soft-cancel an appointment, freeing its slot.

        Args:
            appointment_id: Appointment to cancel
            clinic_id: Clinic the appointment belongs to
            cancelled_by: 'contact' or 'clinic'
            reason: Optional cancellation reason

        Raises:
            NotFoundError: If the appointment is unknown in this clinic
            ValueError: If the appointment is not active or cancelled_by is invalid
        """
        if cancelled_by not in CANCELLED_BY_VALUES:
            raise ValueError(f"cancelled_by must be one of {', '.join(CANCELLED_BY_VALUES)}")

        try:
            appointment = self.repository.get_appointment(appointment_id, clinic_id, for_update=True)
            if not appointment.is_active:
                raise ValueError(f"Appointment {appointment_id} is {appointment.status} and cannot be cancelled")

            appointment.status = "cancelled"
            appointment.cancelled_at = utc_now()
            appointment.cancelled_by = cancelled_by
            appointment.cancellation_reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Appointment {appointment_id} cancelled by {cancelled_by}")
        return appointment

    def update_status(self, appointment_id: int, clinic_id: int, status: str) -> Appointment:
        """
        Change an appointment's status along the allowed transitions.

        Cancellation is delegated to cancel() with cancelled_by='clinic'.
        Setting the current status again is a no-op.

        Raises:
            NotFoundError: If the appointment is unknown in this clinic
            ValueError: If the status is unknown or the transition is not allowed
        """
        if status not in STATUS_TRANSITIONS:
            raise ValueError(f"Unknown appointment status: {status}")

        appointment = self.repository.get_appointment(appointment_id, clinic_id)
        if appointment.status == status:
            return appointment
        if status not in STATUS_TRANSITIONS[appointment.status]:
            raise ValueError(f"Cannot change appointment status from {appointment.status} to {status}")
        if status == "cancelled":
            return self.cancel(appointment_id, clinic_id, cancelled_by="clinic")

        try:
            appointment.status = status
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Appointment {appointment_id} status changed to {status}")
        return appointment

    def list_appointments(
        self,
        clinic_id: int,
        professional_id: Optional[int] = None,
        contact_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = DEFAULT_APPOINTMENT_LIST_LIMIT,
        offset: int = 0,
    ) -> Tuple[List[Appointment], int]:
        """List a clinic's appointments; see AppointmentRepository.list_appointments."""
        return self.repository.list_appointments(
            clinic_id,
            professional_id=professional_id,
            contact_id=contact_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )

    def _slot_taken(
        self,
        professional_id: int,
        candidate: Interval,
        tz: ZoneInfo,
        exclude_appointment_id: Optional[int] = None,
    ) -> AppointmentConflict:
        """Build the conflict raised when the unique index rejects a write."""
        holder = self.repository.find_active_at(professional_id, candidate.start, tz)
        if holder is None or holder.id == exclude_appointment_id:
            holder = self.repository.find_overlapping(professional_id, candidate, tz, exclude_appointment_id)
        if holder is None:
            return AppointmentConflict("Requested time was just booked by another request", candidate)
        conflict = appointment_detail(AppointmentInterval.from_model(holder, tz))
        return AppointmentConflict(
            f"Requested time was just booked by appointment {holder.id}", candidate, conflict
        )

    def _reject(
        self,
        error: BookingRejectedError,
        clinic_id: int,
        professional_id: int,
        candidate: Interval,
        appointment_id: Optional[int] = None,
    ) -> BookingRejectedError:
        """Log a rejection and attach the next free slots as alternatives."""
        self._log_state(BookingState.REJECTED, error.kind, professional_id, candidate, appointment_id)
        try:
            error.suggested_slots = self.slot_finder.find_next_available_slots(
                clinic_id,
                professional_id,
                after=candidate.start,
                duration_minutes=max(candidate.duration_minutes, 1),
                exclude_appointment_id=appointment_id,
            )
        except (SchedulingError, SQLAlchemyError) as e:
            logger.exception(f"Failed to compute alternative slots for professional {professional_id}: {e}")
        return error

    @staticmethod
    def _log_state(
        state: BookingState,
        operation: str,
        professional_id: int,
        candidate: Interval,
        appointment_id: Optional[int] = None,
    ) -> None:
        message = (
            f"Booking {state.value} ({operation}): professional={professional_id} "
            f"{candidate.start.isoformat()}-{candidate.end.isoformat()}"
        )
        if appointment_id is not None:
            message += f" appointment={appointment_id}"
        if state == BookingState.REJECTED:
            logger.warning(message)
        elif state == BookingState.COMMITTED:
            logger.info(message)
        else:
            logger.debug(message)
