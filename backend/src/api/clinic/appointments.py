# pyright: reportMissingTypeStubs=false
"""
Appointment API endpoints.

Create, reschedule, cancel, update status and list. Create and reschedule are
synchronous: they return the committed appointment or a typed rejection
(see the SchedulingError handler in main.py) with the conflicting entity and
alternative slots.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.constants import DEFAULT_APPOINTMENT_LIST_LIMIT, MAX_APPOINTMENT_LIST_LIMIT
from services.scheduling_engine import SchedulingEngine, get_scheduling_engine
from services.scheduling_errors import SchedulingError
from shared_types.scheduling import BookingResult, Interval
from utils.datetime_utils import parse_date_string
from api.clinic.scheduling_schemas import (
    AppointmentCancelRequest,
    AppointmentCreateRequest,
    AppointmentListResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatusUpdateRequest,
    BookingResponse,
    WarningResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _booking_response(result: BookingResult) -> BookingResponse:
    return BookingResponse(
        appointment=AppointmentResponse.from_model(result.appointment),
        state=result.state.value,
        partial=result.partial,
        warnings=[WarningResponse.from_warning(warning) for warning in result.warnings],
    )


@router.post("/clinics/{clinic_id}/appointments",
             summary="Book an appointment",
             status_code=status.HTTP_201_CREATED)
def create_appointment(
    clinic_id: int,
    request: AppointmentCreateRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> BookingResponse:
    """
    Book an appointment.

    The booking is validated again at commit time against the clinic's rules
    and the professional's calendar. Rejections return 409 with the specific
    type (not_working_day, outside_working_hours, lunch_break_conflict,
    appointment_conflict, external_calendar_conflict).
    """
    try:
        result = engine.booking_coordinator.book(
            Interval.from_duration(request.start_time, request.duration_minutes),
            professional_id=request.professional_id,
            clinic_id=clinic_id,
            contact_id=request.contact_id,
            title=request.title,
            notes=request.notes,
        )
        return _booking_response(result)
    except (SchedulingError, ValueError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Failed to create appointment in clinic {clinic_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create appointment"
        )


@router.put("/clinics/{clinic_id}/appointments/{appointment_id}/reschedule",
            summary="Reschedule an appointment")
def reschedule_appointment(
    clinic_id: int,
    appointment_id: int,
    request: AppointmentRescheduleRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> BookingResponse:
    """
    Move an appointment to a new start time (and optionally a new duration).

    The appointment never conflicts with its own current slot.
    """
    try:
        duration = request.duration_minutes
        if duration is None:
            duration = engine.repository.get_appointment(appointment_id, clinic_id).duration_minutes
        result = engine.booking_coordinator.reschedule(
            appointment_id,
            Interval.from_duration(request.start_time, duration),
            clinic_id=clinic_id,
        )
        return _booking_response(result)
    except (SchedulingError, ValueError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Failed to reschedule appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reschedule appointment"
        )


@router.post("/clinics/{clinic_id}/appointments/{appointment_id}/cancel",
             summary="Cancel an appointment")
def cancel_appointment(
    clinic_id: int,
    appointment_id: int,
    request: AppointmentCancelRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AppointmentResponse:
    """Soft-cancel an appointment; its slot becomes available again."""
    appointment = engine.booking_coordinator.cancel(
        appointment_id,
        clinic_id,
        cancelled_by=request.cancelled_by,
        reason=request.reason,
    )
    return AppointmentResponse.from_model(appointment)


@router.patch("/clinics/{clinic_id}/appointments/{appointment_id}/status",
              summary="Update an appointment's status")
def update_appointment_status(
    clinic_id: int,
    appointment_id: int,
    request: AppointmentStatusUpdateRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AppointmentResponse:
    """Confirm, complete or mark an appointment as no-show (or cancel it)."""
    appointment = engine.booking_coordinator.update_status(appointment_id, clinic_id, request.status)
    return AppointmentResponse.from_model(appointment)


@router.get("/clinics/{clinic_id}/appointments",
            summary="List appointments")
def list_appointments(
    clinic_id: int,
    professional_id: Optional[int] = Query(None),
    contact_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    limit: int = Query(DEFAULT_APPOINTMENT_LIST_LIMIT, ge=1, le=MAX_APPOINTMENT_LIST_LIMIT),
    offset: int = Query(0, ge=0),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AppointmentListResponse:
    """List a clinic's appointments ordered by start time."""
    appointments, total = engine.booking_coordinator.list_appointments(
        clinic_id,
        professional_id=professional_id,
        contact_id=contact_id,
        status=status_filter,
        date_from=parse_date_string(date_from) if date_from else None,
        date_to=parse_date_string(date_to) if date_to else None,
        limit=limit,
        offset=offset,
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_model(appointment) for appointment in appointments],
        total=total,
        limit=limit,
        offset=offset,
    )
