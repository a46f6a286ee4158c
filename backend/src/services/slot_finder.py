"""
Slot finder.

Enumerates free slots for a professional on one day:

1. non-working days short-circuit to an empty result
2. a grid is laid over the working hours with a step equal to the requested
   duration, truncated so the last slot ends by closing time
3. every grid point is checked by the conflict detector; survivors are slots

Results are a flat list in ascending start order. Grouping into
morning/afternoon/evening is left to presentation (see group_slots_by_period).
The computation never reads the wall clock, so past dates are computed like
any other date.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.constants import DEFAULT_SUGGESTION_COUNT, SUGGESTION_SEARCH_DAYS
from services.clinic_rule_provider import ClinicRuleProvider
from services.conflict_detector import ConflictDetector
from shared_types.scheduling import AvailabilityQuery, AvailabilityResult, CandidateSlot, Interval
from utils.datetime_utils import slot_period, to_clinic_local

logger = logging.getLogger(__name__)


def group_slots_by_period(slots: List[CandidateSlot]) -> Dict[str, List[CandidateSlot]]:
    """Group slots into morning, afternoon and evening by their start time."""
    groups: Dict[str, List[CandidateSlot]] = {"morning": [], "afternoon": [], "evening": []}
    for slot in slots:
        groups[slot_period(slot.start)].append(slot)
    return groups


class SlotFinder:
    """Computes free slots from clinic rules and a professional's busy time."""

    def __init__(self, rule_provider: ClinicRuleProvider, conflict_detector: ConflictDetector) -> None:
        self.rule_provider = rule_provider
        self.conflict_detector = conflict_detector

    @staticmethod
    def generate_grid(window: Interval, duration_minutes: int) -> List[Interval]:
        """
        Lay fixed-size candidates over a window, back to back from its start.

        Candidates never extend past the end of the window; a window shorter
        than the duration yields no candidates.
        """
        if duration_minutes <= 0:
            raise ValueError("Duration must be greater than zero")
        step = timedelta(minutes=duration_minutes)
        grid: List[Interval] = []
        current = window.start
        while current + step <= window.end:
            grid.append(Interval(current, current + step))
            current += step
        return grid

    def find_slots(self, query: AvailabilityQuery) -> List[CandidateSlot]:
        """
        Find free slots for an availability query.

        Returns:
            Free slots in ascending start order (recomputed on every call)

        Raises:
            NotFoundError: If the clinic is unknown
            ConfigError: If the clinic's schedule is malformed
        """
        return self.find_availability(query).slots

    def find_availability(self, query: AvailabilityQuery) -> AvailabilityResult:
        """
        Find free slots plus the busy blocks that shaped them.

        The result is flagged partial (with PartialExternalData warnings) when
        external calendar data could not be loaded.

        Raises:
            NotFoundError: If the clinic is unknown
            ConfigError: If the clinic's schedule is malformed
        """
        schedule = self.rule_provider.get_schedule(query.clinic_id)
        result = AvailabilityResult(query=query, schedule=schedule)

        if not ClinicRuleProvider.is_working_day_for(schedule, query.day):
            logger.debug(f"Clinic {query.clinic_id} does not work on {query.day.isoformat()}")
            return result

        window = schedule.working_window(query.day, query.work_start_override, query.work_end_override)
        grid = self.generate_grid(window, query.duration_minutes)
        if not grid:
            return result

        context = self.conflict_detector.load_context(
            schedule, query.professional_id, window, query.exclude_appointment_id
        )
        result.slots = [
            CandidateSlot(start=candidate.start, end=candidate.end)
            for candidate in grid
            if not ConflictDetector.find_conflict(candidate, context).has_conflict
        ]
        result.busy_blocks = context.busy_blocks()
        result.warnings = list(context.warnings)

        logger.debug(
            f"Found {len(result.slots)}/{len(grid)} free slots for professional "
            f"{query.professional_id} on {query.day.isoformat()}"
        )
        return result

    def find_next_available_slots(
        self,
        clinic_id: int,
        professional_id: int,
        after: datetime,
        duration_minutes: int,
        limit: int = DEFAULT_SUGGESTION_COUNT,
        max_days: int = SUGGESTION_SEARCH_DAYS,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[CandidateSlot]:
        """
        Find the next free slots starting at or after a datetime.

        Scans forward day by day, at most `max_days` days. An aware `after` is
        converted to the clinic's local time first.

        Returns:
            Up to `limit` slots in ascending order
        """
        if after.tzinfo is not None:
            after = to_clinic_local(after, self.rule_provider.get_schedule(clinic_id).tzinfo)

        suggestions: List[CandidateSlot] = []
        for offset in range(max_days):
            query = AvailabilityQuery(
                clinic_id=clinic_id,
                professional_id=professional_id,
                day=after.date() + timedelta(days=offset),
                duration_minutes=duration_minutes,
                exclude_appointment_id=exclude_appointment_id,
            )
            for slot in self.find_slots(query):
                if slot.start >= after:
                    suggestions.append(slot)
                    if len(suggestions) >= limit:
                        return suggestions
        return suggestions
