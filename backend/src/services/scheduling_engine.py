"""
Scheduling engine wiring.

Builds the rule provider, conflict detector, slot finder and booking
coordinator around one database session. Collaborators are passed explicitly
so callers (and tests) can swap the external calendar adapter.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from services.appointment_repository import AppointmentRepository
from services.booking_coordinator import BookingCoordinator
from services.clinic_rule_provider import ClinicRuleProvider, SqlClinicConfigurationSource
from services.conflict_detector import ConflictDetector
from services.external_calendar import ExternalCalendarAdapter, GoogleCalendarAdapter
from services.slot_finder import SlotFinder


@dataclass
class SchedulingEngine:
    """The scheduling components bound to one session."""
    rule_provider: ClinicRuleProvider
    conflict_detector: ConflictDetector
    slot_finder: SlotFinder
    booking_coordinator: BookingCoordinator
    repository: AppointmentRepository


def build_scheduling_engine(
    db: Session,
    external_calendar: Optional[ExternalCalendarAdapter] = None,
) -> SchedulingEngine:
    """
    Assemble the scheduling engine for a session.

    Args:
        db: Database session used for reads and for the booking transaction
        external_calendar: External calendar adapter (defaults to Google Calendar)
    """
    repository = AppointmentRepository(db)
    rule_provider = ClinicRuleProvider(SqlClinicConfigurationSource(db))
    conflict_detector = ConflictDetector(
        rule_provider,
        repository,
        external_calendar if external_calendar is not None else GoogleCalendarAdapter(db),
    )
    slot_finder = SlotFinder(rule_provider, conflict_detector)
    booking_coordinator = BookingCoordinator(db, rule_provider, conflict_detector, slot_finder, repository)
    return SchedulingEngine(
        rule_provider=rule_provider,
        conflict_detector=conflict_detector,
        slot_finder=slot_finder,
        booking_coordinator=booking_coordinator,
        repository=repository,
    )


def get_scheduling_engine(db: Session = Depends(get_db)) -> SchedulingEngine:
    """FastAPI dependency providing a scheduling engine for the request's session."""
    return build_scheduling_engine(db)
