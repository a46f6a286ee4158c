"""
Clinic rule provider.

Resolves a clinic's scheduling configuration into a validated ClinicSchedule.
Loosely-typed JSON settings are validated once here; anything malformed is
reported as ConfigError and the clinic is treated as having no availability.
"""

import logging
from datetime import date, datetime
from typing import Protocol, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from models import Clinic
from services.scheduling_errors import ConfigError, NotFoundError
from shared_types.scheduling import ClinicSchedule
from utils.datetime_utils import parse_time_string, to_clinic_local

logger = logging.getLogger(__name__)


class ClinicConfigurationSource(Protocol):
    """Anything that can produce a clinic's schedule."""

    def get_clinic_schedule(self, clinic_id: int) -> ClinicSchedule:
        ...


def schedule_from_clinic(clinic: Clinic) -> ClinicSchedule:
    """
    Build a validated ClinicSchedule from a clinic row.

    Args:
        clinic: Clinic whose settings to validate

    Returns:
        Validated schedule

    Raises:
        ConfigError: If the settings fail schema validation or a schedule invariant
    """
    try:
        settings = clinic.get_validated_settings().scheduling_settings
    except ValidationError as e:
        raise ConfigError(clinic.id, f"settings failed validation: {e.errors()[0].get('msg', str(e))}") from e

    return ClinicSchedule(
        clinic_id=clinic.id,
        working_days=tuple(settings.working_days),
        work_start=parse_time_string(settings.work_start),
        work_end=parse_time_string(settings.work_end),
        timezone=clinic.timezone,
        has_lunch_break=settings.has_lunch_break,
        lunch_start=parse_time_string(settings.lunch_start) if settings.has_lunch_break else None,
        lunch_end=parse_time_string(settings.lunch_end) if settings.has_lunch_break else None,
    )


class SqlClinicConfigurationSource:
    """Reads clinic schedules from the clinics table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_clinic_schedule(self, clinic_id: int) -> ClinicSchedule:
        clinic = self.db.query(Clinic).filter(Clinic.id == clinic_id).first()
        if clinic is None or not clinic.is_active:
            raise NotFoundError("Clinic", clinic_id)
        return schedule_from_clinic(clinic)


class ClinicRuleProvider:
    """
    Resolves per-clinic scheduling rules.

    Every call reads the current configuration; rules changed by clinic
    administration take effect on the next query or booking.
    """

    def __init__(self, source: ClinicConfigurationSource) -> None:
        self.source = source

    def get_schedule(self, clinic_id: int) -> ClinicSchedule:
        """
        Get the validated schedule of a clinic.

        Raises:
            NotFoundError: If the clinic is unknown or inactive
            ConfigError: If the clinic's scheduling settings are malformed
        """
        try:
            return self.source.get_clinic_schedule(clinic_id)
        except ConfigError as e:
            logger.warning(f"Clinic {clinic_id} has an invalid schedule, treating as unavailable: {e.reason}")
            raise

    def is_working_day(self, day: Union[date, datetime], clinic_id: int) -> bool:
        """
        Check whether a day is one of the clinic's working days.

        A datetime is first converted into the clinic's timezone (naive values
        are taken as clinic-local). Working hours play no part in the answer.
        """
        return self.is_working_day_for(self.get_schedule(clinic_id), day)

    @staticmethod
    def is_working_day_for(schedule: ClinicSchedule, day: Union[date, datetime]) -> bool:
        """Check a day against an already-resolved schedule."""
        if isinstance(day, datetime):
            day = to_clinic_local(day, schedule.tzinfo).date()
        return schedule.is_working_weekday(day)
