"""
Utility functions for consistent appointment queries.

This module contains reusable query functions that ensure common appointment
query patterns (active-status filtering, overlap windows, list filters) are
applied consistently across the repository and APIs.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Query

from models import Appointment
from shared_types.scheduling import ACTIVE_APPOINTMENT_STATUSES
from utils.datetime_utils import day_bounds, to_utc


def filter_active_appointments(query: Query[Appointment]) -> Query[Appointment]:
    """
    Apply filter to only include appointments that occupy time.

    Cancelled, completed and no-show appointments never block a slot.

    Args:
        query: Base query for Appointment

    Returns:
        Query filtered to active appointments
    """
    return query.filter(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))


def filter_overlapping(query: Query[Appointment], start: datetime, end: datetime) -> Query[Appointment]:
    """
    Apply filter to appointments overlapping the half-open window [start, end).

    `start` and `end` must be timezone-aware instants.

    Back-to-back appointments (ending exactly at `start` or starting exactly at
    `end`) are not included.
    """
    return query.filter(Appointment.start_time < end, Appointment.end_time > start)


def apply_list_filters(
    query: Query[Appointment],
    professional_id: Optional[int] = None,
    contact_id: Optional[int] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    tz: Optional[ZoneInfo] = None,
) -> Query[Appointment]:
    """
    Apply the optional filters accepted by the appointment listing endpoint.

    Args:
        query: Base query for Appointment
        professional_id: Only appointments of this professional
        contact_id: Only appointments of this contact
        status: Only appointments with this status
        date_from: Only appointments starting on or after this day
        date_to: Only appointments starting on or before this day (inclusive)
        tz: Clinic timezone the days are taken in; UTC when omitted

    Returns:
        Filtered query
    """
    if professional_id is not None:
        query = query.filter(Appointment.user_id == professional_id)
    if contact_id is not None:
        query = query.filter(Appointment.contact_id == contact_id)
    if status is not None:
        query = query.filter(Appointment.status == status)
    tz = tz or ZoneInfo("UTC")
    if date_from is not None:
        query = query.filter(Appointment.start_time >= to_utc(day_bounds(date_from)[0], tz))
    if date_to is not None:
        query = query.filter(Appointment.start_time < to_utc(day_bounds(date_to)[1], tz))
    return query
