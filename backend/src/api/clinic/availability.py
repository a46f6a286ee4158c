# pyright: reportMissingTypeStubs=false
"""
Availability API endpoints.

Read-only endpoints: a clinic's scheduling rules and a professional's free
slots for a day. These run without locks; bookings re-validate at commit time.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.constants import MAX_APPOINTMENT_DURATION_MINUTES, MIN_APPOINTMENT_DURATION_MINUTES
from services.scheduling_engine import SchedulingEngine, get_scheduling_engine
from services.scheduling_errors import SchedulingError
from services.slot_finder import group_slots_by_period
from shared_types.scheduling import AvailabilityQuery
from utils.datetime_utils import parse_date_string, parse_time_string
from api.clinic.scheduling_schemas import (
    AvailabilityResponse,
    BusyBlockResponse,
    ScheduleResponse,
    SlotResponse,
    WarningResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/clinics/{clinic_id}/schedule",
            summary="Get a clinic's scheduling rules")
def get_clinic_schedule(
    clinic_id: int,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> ScheduleResponse:
    """Return the clinic's validated working days, working hours, lunch break and timezone."""
    schedule = engine.rule_provider.get_schedule(clinic_id)
    return ScheduleResponse.from_schedule(schedule)


@router.get("/clinics/{clinic_id}/availability",
            summary="Get free slots for a professional on a date")
def get_availability(
    clinic_id: int,
    professional_id: int = Query(..., description="Professional whose calendar to query"),
    date: str = Query(..., description="Date in YYYY-MM-DD format (clinic-local)"),
    duration_minutes: int = Query(
        ..., ge=MIN_APPOINTMENT_DURATION_MINUTES, le=MAX_APPOINTMENT_DURATION_MINUTES,
        description="Requested appointment duration; also the slot grid step",
    ),
    work_start: Optional[str] = Query(None, description="Working-hours override start (HH:MM)"),
    work_end: Optional[str] = Query(None, description="Working-hours override end (HH:MM)"),
    exclude_appointment_id: Optional[int] = Query(None, description="Appointment to ignore, for rescheduling in place"),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AvailabilityResponse:
    """
    Get a professional's free slots for one day.

    Returns the free slots in ascending order, the same slots grouped into
    morning/afternoon/evening, and the busy blocks (lunch break, appointments,
    external events) that were excluded. `partial` is true when the
    professional's external calendar could not be read.
    """
    try:
        query = AvailabilityQuery(
            clinic_id=clinic_id,
            professional_id=professional_id,
            day=parse_date_string(date),
            duration_minutes=duration_minutes,
            work_start_override=parse_time_string(work_start) if work_start else None,
            work_end_override=parse_time_string(work_end) if work_end else None,
            exclude_appointment_id=exclude_appointment_id,
        )
        result = engine.slot_finder.find_availability(query)

        grouped = group_slots_by_period(result.slots)
        return AvailabilityResponse(
            date=query.day.isoformat(),
            professional_id=professional_id,
            duration_minutes=duration_minutes,
            timezone=result.timezone,
            slots=[SlotResponse.from_slot(slot) for slot in result.slots],
            slots_by_period={
                period: [SlotResponse.from_slot(slot) for slot in slots]
                for period, slots in grouped.items()
            },
            busy_blocks=[BusyBlockResponse.from_detail(block) for block in result.busy_blocks],
            partial=result.partial,
            warnings=[WarningResponse.from_warning(warning) for warning in result.warnings],
        )
    except (SchedulingError, ValueError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Failed to compute availability for clinic {clinic_id}, professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute availability"
        )
