"""
Conflict detector.

Decides whether a candidate interval collides with a professional's busy time.
Checks run in a fixed order and the first hit wins:

1. the clinic's lunch break (a synthetic block recomputed for every day)
2. the professional's active appointments (optionally excluding one, for
   rescheduling an appointment onto its own slot)
3. the professional's external calendar busy blocks

Busy data is loaded once into a ConflictContext; checking candidates against a
loaded context is a pure function, so the slot finder can test a whole grid
with one round of queries.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from services.appointment_repository import AppointmentRepository
from services.clinic_rule_provider import ClinicRuleProvider
from services.external_calendar import ExternalCalendarAdapter
from services.scheduling_errors import PartialExternalData
from shared_types.scheduling import (
    AppointmentInterval,
    ClinicSchedule,
    ConflictDetail,
    ConflictResult,
    ExternalBusyBlock,
    Interval,
)
from utils.datetime_utils import to_clinic_local

logger = logging.getLogger(__name__)

LUNCH_BREAK_TITLE = "Lunch break"


def days_touched(interval: Interval) -> List[date]:
    """Calendar days a non-empty interval covers (end is exclusive)."""
    if interval.is_empty:
        return []
    last = (interval.end - timedelta(microseconds=1)).date()
    days: List[date] = []
    current = interval.start.date()
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def lunch_detail(schedule: ClinicSchedule, day: date) -> Optional[ConflictDetail]:
    lunch = schedule.lunch_interval(day)
    if lunch is None:
        return None
    return ConflictDetail(type="lunch", start=lunch.start, end=lunch.end, title=LUNCH_BREAK_TITLE, source="clinic")


def appointment_detail(appointment: AppointmentInterval) -> ConflictDetail:
    return ConflictDetail(
        type="appointment",
        start=appointment.start,
        end=appointment.end,
        title=appointment.title,
        appointment_id=appointment.id,
        source="appointment",
    )


def external_detail(block: ExternalBusyBlock) -> ConflictDetail:
    return ConflictDetail(
        type="external",
        start=block.start,
        end=block.end,
        title=block.title,
        external_id=block.external_id,
        source=block.source,
    )


@dataclass
class ConflictContext:
    """Busy data of one professional over a window, in clinic-local time."""
    schedule: ClinicSchedule
    professional_id: int
    window: Interval
    appointments: List[AppointmentInterval] = field(default_factory=list)
    external_blocks: List[ExternalBusyBlock] = field(default_factory=list)
    warnings: List[PartialExternalData] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.warnings)

    def busy_blocks(self, within: Optional[Interval] = None) -> List[ConflictDetail]:
        """
        All busy blocks overlapping a window (defaults to the loaded window).

        Returns:
            Lunch, appointment and external blocks ordered by start time
        """
        within = within or self.window
        blocks: List[ConflictDetail] = []
        for day in days_touched(within):
            lunch = lunch_detail(self.schedule, day)
            if lunch is not None:
                blocks.append(lunch)
        blocks.extend(appointment_detail(a) for a in self.appointments)
        blocks.extend(external_detail(b) for b in self.external_blocks)
        return sorted(
            (block for block in blocks if block.interval.overlaps(within)),
            key=lambda block: (block.start, block.end),
        )


class ConflictDetector:
    """Checks candidate intervals against lunch, appointments and external calendars."""

    def __init__(
        self,
        rule_provider: ClinicRuleProvider,
        repository: AppointmentRepository,
        external_calendar: ExternalCalendarAdapter,
    ) -> None:
        self.rule_provider = rule_provider
        self.repository = repository
        self.external_calendar = external_calendar

    def load_context(
        self,
        schedule: ClinicSchedule,
        professional_id: int,
        window: Interval,
        exclude_appointment_id: Optional[int] = None,
    ) -> ConflictContext:
        """
        Load a professional's busy data over a clinic-local window.

        External calendar failures never abort the load: the context is
        returned without external blocks and carries a PartialExternalData warning.
        """
        tz = schedule.tzinfo
        window = window.as_clinic_local(tz)
        context = ConflictContext(schedule=schedule, professional_id=professional_id, window=window)
        context.appointments = self.repository.list_active_appointments(
            professional_id, window.start, window.end, tz, exclude_appointment_id
        )

        try:
            # All-day events are projected in the zone of the window bounds
            raw_blocks = self.external_calendar.list_busy_blocks(
                professional_id,
                window.start.replace(tzinfo=tz),
                window.end.replace(tzinfo=tz),
            )
        except Exception as e:
            logger.warning(
                f"External calendar unavailable for professional {professional_id}, "
                f"continuing with internal appointments only: {e}",
                exc_info=True,
            )
            context.warnings.append(PartialExternalData(professional_id=professional_id, reason=str(e)))
            return context

        for block in raw_blocks:
            local = ExternalBusyBlock(
                professional_id=block.professional_id,
                start=to_clinic_local(block.start, tz),
                end=to_clinic_local(block.end, tz),
                title=block.title,
                source=block.source,
                external_id=block.external_id,
            )
            if local.interval.overlaps(window):
                context.external_blocks.append(local)
        context.external_blocks.sort(key=lambda b: (b.start, b.end))
        return context

    @staticmethod
    def find_conflict(candidate: Interval, context: ConflictContext) -> ConflictResult:
        """
        Check one candidate against a loaded context.

        Returns the first conflict in lunch, appointment, external order.
        Back-to-back and zero-length intervals never conflict.
        """
        for day in days_touched(candidate):
            lunch = lunch_detail(context.schedule, day)
            if lunch is not None and candidate.overlaps(lunch.interval):
                return ConflictResult(conflict=lunch, partial=context.partial)

        for appointment in context.appointments:
            if candidate.overlaps(appointment.interval):
                return ConflictResult(conflict=appointment_detail(appointment), partial=context.partial)

        for block in context.external_blocks:
            if candidate.overlaps(block.interval):
                return ConflictResult(conflict=external_detail(block), partial=context.partial)

        return ConflictResult(conflict=None, partial=context.partial)

    def has_conflict(
        self,
        candidate: Interval,
        professional_id: int,
        clinic_id: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> ConflictResult:
        """
        Check a candidate interval for a professional at a clinic.

        Args:
            candidate: Interval to check; aware bounds are converted to clinic-local time
            professional_id: Professional whose calendar to check
            clinic_id: Clinic whose lunch break applies
            exclude_appointment_id: Appointment to ignore (rescheduling in place)

        Returns:
            ConflictResult with the first conflict found, if any

        Raises:
            NotFoundError: If the clinic is unknown
            ConfigError: If the clinic's schedule is malformed
        """
        schedule = self.rule_provider.get_schedule(clinic_id)
        candidate = candidate.as_clinic_local(schedule.tzinfo)
        context = self.load_context(schedule, professional_id, candidate, exclude_appointment_id)
        return self.find_conflict(candidate, context)
