"""
Appointment repository backed by SQLAlchemy.

All methods run inside the caller's session; none of them commits. The booking
coordinator owns the transaction boundary.

Appointment times are stored as UTC instants. Methods that take or return
clinic-local times receive the clinic timezone and convert at this boundary.
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from core.constants import DEFAULT_APPOINTMENT_LIST_LIMIT, MAX_APPOINTMENT_LIST_LIMIT
from models import Appointment, Clinic, Contact, UserClinicAssociation
from models.user_clinic_association import PROFESSIONAL_ROLE
from services.scheduling_errors import NotFoundError
from shared_types.scheduling import AppointmentInterval, Interval
from utils.appointment_queries import apply_list_filters, filter_active_appointments, filter_overlapping
from utils.datetime_utils import get_timezone, to_utc

logger = logging.getLogger(__name__)


class AppointmentRepository:
    """Queryable, transactional store of appointments."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_active_appointments(
        self,
        professional_id: int,
        start: datetime,
        end: datetime,
        tz: ZoneInfo,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[AppointmentInterval]:
        """
        List a professional's active appointments overlapping [start, end).

        Appointments are scoped to the professional across all clinics, since a
        professional working for two clinics cannot be in both at once.

        Args:
            professional_id: Professional whose calendar to read
            start: Window start (clinic-local)
            end: Window end (clinic-local, exclusive)
            tz: Clinic timezone of the window and of the returned intervals
            exclude_appointment_id: Appointment to leave out (reschedule in place)

        Returns:
            Appointment intervals in clinic-local time, ordered by start time
        """
        query = self.db.query(Appointment).filter(Appointment.user_id == professional_id)
        query = filter_overlapping(filter_active_appointments(query), to_utc(start, tz), to_utc(end, tz))
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        appointments = query.order_by(Appointment.start_time, Appointment.id).all()
        return [AppointmentInterval.from_model(appointment, tz) for appointment in appointments]

    def get_appointment(self, appointment_id: int, clinic_id: int, for_update: bool = False) -> Appointment:
        """
        Load an appointment of a clinic.

        Args:
            appointment_id: Appointment ID
            clinic_id: Clinic the appointment must belong to
            for_update: Lock the row (SELECT ... FOR UPDATE NOWAIT)

        Raises:
            NotFoundError: If the appointment does not exist in this clinic
            OperationalError: If for_update is set and the row is already locked
        """
        query = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.clinic_id == clinic_id,
        )
        if for_update:
            query = query.with_for_update(nowait=True).populate_existing()
        appointment = query.first()
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def find_active_at(self, professional_id: int, start: datetime, tz: ZoneInfo) -> Optional[Appointment]:
        """Find the active appointment holding a professional's exact start instant."""
        query = self.db.query(Appointment).filter(
            Appointment.user_id == professional_id,
            Appointment.start_time == to_utc(start, tz),
        )
        return filter_active_appointments(query).first()

    def find_overlapping(
        self,
        professional_id: int,
        interval: Interval,
        tz: ZoneInfo,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """Find the earliest active appointment of a professional overlapping an interval."""
        query = self.db.query(Appointment).filter(Appointment.user_id == professional_id)
        query = filter_overlapping(
            filter_active_appointments(query), to_utc(interval.start, tz), to_utc(interval.end, tz)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.start_time, Appointment.id).first()

    def get_professional(self, clinic_id: int, professional_id: int, lock: bool = False) -> UserClinicAssociation:
        """
        Load the active professional association of a user at a clinic.

        With lock=True the association row is locked for the rest of the
        transaction, serializing bookings for that professional on databases
        that support row locks.

        Raises:
            NotFoundError: If the user is not an active professional of the clinic
        """
        query = self.db.query(UserClinicAssociation).filter(
            UserClinicAssociation.clinic_id == clinic_id,
            UserClinicAssociation.user_id == professional_id,
            UserClinicAssociation.is_active == True,  # noqa: E712
        )
        if lock:
            query = query.with_for_update()
        association = query.first()
        if association is None or PROFESSIONAL_ROLE not in (association.roles or []):
            raise NotFoundError("Professional", professional_id)
        return association

    def get_contact(self, clinic_id: int, contact_id: int) -> Contact:
        """
        Load a contact of a clinic.

        Raises:
            NotFoundError: If the contact does not exist in this clinic
        """
        contact = self.db.query(Contact).filter(
            Contact.id == contact_id,
            Contact.clinic_id == clinic_id,
        ).first()
        if contact is None:
            raise NotFoundError("Contact", contact_id)
        return contact

    def insert_appointment(
        self,
        clinic_id: int,
        professional_id: int,
        contact_id: int,
        interval: Interval,
        tz: ZoneInfo,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = "scheduled",
    ) -> Appointment:
        """
        Add a new appointment to the session and flush it.

        The clinic-local interval is stored as UTC instants.

        Raises:
            IntegrityError: If another active appointment holds the same start time
        """
        appointment = Appointment(
            clinic_id=clinic_id,
            user_id=professional_id,
            contact_id=contact_id,
            start_time=to_utc(interval.start, tz),
            end_time=to_utc(interval.end, tz),
            duration_minutes=interval.duration_minutes,
            status=status,
            title=title,
            notes=notes,
        )
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def update_appointment(self, appointment: Appointment, new_interval: Interval, tz: ZoneInfo) -> Appointment:
        """
        Move an appointment to a new interval and flush.

        Raises:
            IntegrityError: If another active appointment holds the new start time
        """
        appointment.reschedule_to(to_utc(new_interval.start, tz), new_interval.duration_minutes)
        self.db.flush()
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
        """
        List a clinic's appointments with optional filters and pagination.

        Date filters are calendar days in the clinic's timezone.

        Returns:
            Tuple of (appointments ordered by start time, total matching count)

        Raises:
            NotFoundError: If the clinic does not exist
        """
        limit = max(1, min(limit, MAX_APPOINTMENT_LIST_LIMIT))
        offset = max(0, offset)

        query = self.db.query(Appointment).filter(Appointment.clinic_id == clinic_id)
        query = apply_list_filters(
            query,
            professional_id=professional_id,
            contact_id=contact_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            tz=self.get_clinic_timezone(clinic_id),
        )
        total = query.count()
        appointments = query.order_by(Appointment.start_time, Appointment.id).offset(offset).limit(limit).all()
        return appointments, total

    def get_clinic_timezone(self, clinic_id: int) -> ZoneInfo:
        """
        Resolve the timezone of a clinic.

        Raises:
            NotFoundError: If the clinic does not exist
            ValueError: If the clinic's timezone identifier is unknown
        """
        clinic = self.db.query(Clinic).filter(Clinic.id == clinic_id).first()
        if clinic is None:
            raise NotFoundError("Clinic", clinic_id)
        return get_timezone(clinic.timezone)
