"""
Test configuration and shared fixtures for the clinic scheduling test suite.

Uses an in-memory SQLite database; the schema is created from the SQLAlchemy
models. Each test gets a fresh database.
"""

import os

# Must be set before core.database builds the application engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import datetime, timedelta
from typing import Generator, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import create_tables, drop_tables
from models import Appointment, Clinic, Contact, User, UserClinicAssociation
from models.user_clinic_association import PROFESSIONAL_ROLE
from services.scheduling_engine import SchedulingEngine, build_scheduling_engine
from shared_types.scheduling import ExternalBusyBlock
from utils.datetime_utils import get_timezone, to_utc

# Scenario clinic: works Mon/Tue/Thu/Fri 08:00-18:00 with lunch 12:00-13:00
SCENARIO_SCHEDULING_SETTINGS = {
    "working_days": ["monday", "tuesday", "thursday", "friday"],
    "work_start": "08:00",
    "work_end": "18:00",
    "has_lunch_break": True,
    "lunch_start": "12:00",
    "lunch_end": "13:00",
}

SCENARIO_TIMEZONE = "America/Sao_Paulo"


class FakeExternalCalendar:
    """External calendar adapter returning canned busy blocks."""

    def __init__(self, blocks: Optional[List[ExternalBusyBlock]] = None) -> None:
        self.blocks = list(blocks or [])
        self.calls = 0

    def list_busy_blocks(self, professional_id: int, start: datetime, end: datetime) -> List[ExternalBusyBlock]:
        self.calls += 1
        return [block for block in self.blocks if block.professional_id == professional_id]


class FailingExternalCalendar:
    """External calendar adapter that always fails."""

    def __init__(self, message: str = "calendar API unreachable") -> None:
        self.message = message

    def list_busy_blocks(self, professional_id: int, start: datetime, end: datetime) -> List[ExternalBusyBlock]:
        raise RuntimeError(self.message)


@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory SQLite engine with the full schema.

    StaticPool keeps the single in-memory connection alive and shares it with
    threadpool workers used by the test client.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_tables(bind=engine)

    yield engine

    drop_tables(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    SessionFactory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = SessionFactory()

    yield session

    session.close()


@pytest.fixture
def external_calendar() -> FakeExternalCalendar:
    return FakeExternalCalendar()


@pytest.fixture
def engine(db_session, external_calendar) -> SchedulingEngine:
    """Scheduling engine bound to the test session with a fake external calendar."""
    return build_scheduling_engine(db_session, external_calendar=external_calendar)


@pytest.fixture
def clinic(db_session) -> Clinic:
    """The scenario clinic (Mon/Tue/Thu/Fri, 08-18, lunch 12-13)."""
    return create_clinic(db_session)


@pytest.fixture
def professional(db_session, clinic) -> User:
    """Professional 4 of the scenario clinic."""
    user, _ = create_professional(db_session, clinic, user_id=4)
    return user


@pytest.fixture
def contact(db_session, clinic) -> Contact:
    return create_contact(db_session, clinic)


# Helper functions for creating scheduling entities
def create_clinic(
    db_session: Session,
    name: str = "Test Clinic",
    scheduling_settings: Optional[dict] = None,
    timezone: str = SCENARIO_TIMEZONE,
    is_active: bool = True,
) -> Clinic:
    """
    Create a clinic with scheduling settings.

    Args:
        db_session: Database session
        name: Clinic name
        scheduling_settings: Raw scheduling settings (defaults to the scenario clinic)
        timezone: IANA timezone of the clinic
        is_active: Whether the clinic is active

    Returns:
        Committed Clinic instance
    """
    settings = SCENARIO_SCHEDULING_SETTINGS if scheduling_settings is None else scheduling_settings
    clinic = Clinic(
        name=name,
        timezone=timezone,
        settings={"scheduling_settings": dict(settings)},
        is_active=is_active,
    )
    db_session.add(clinic)
    db_session.commit()
    return clinic


def create_professional(
    db_session: Session,
    clinic: Clinic,
    full_name: str = "Dr. Test",
    email: Optional[str] = None,
    user_id: Optional[int] = None,
    roles: Optional[List[str]] = None,
    is_active: bool = True,
) -> tuple[User, UserClinicAssociation]:
    """
    Create a user and their professional association with a clinic.

    Returns:
        Tuple of (User, UserClinicAssociation)
    """
    user = User(id=user_id, email=email or f"{full_name.lower().replace(' ', '.')}.{user_id or 'x'}@example.com")
    db_session.add(user)
    db_session.flush()  # Flush to get user.id

    association = UserClinicAssociation(
        user_id=user.id,
        clinic_id=clinic.id,
        roles=roles if roles is not None else [PROFESSIONAL_ROLE],
        full_name=full_name,
        is_active=is_active,
    )
    db_session.add(association)
    db_session.commit()
    return user, association


def create_contact(db_session: Session, clinic: Clinic, full_name: str = "Test Contact") -> Contact:
    contact = Contact(clinic_id=clinic.id, full_name=full_name, phone_number="+5511999990000")
    db_session.add(contact)
    db_session.commit()
    return contact


def create_appointment(
    db_session: Session,
    clinic: Clinic,
    professional: User,
    contact: Contact,
    start: datetime,
    duration_minutes: int = 60,
    status: str = "scheduled",
    appointment_id: Optional[int] = None,
    title: Optional[str] = None,
) -> Appointment:
    """Insert an appointment directly, bypassing booking validation. `start` is clinic-local."""
    tz = get_timezone(clinic.timezone)
    appointment = Appointment(
        id=appointment_id,
        clinic_id=clinic.id,
        user_id=professional.id,
        contact_id=contact.id,
        start_time=to_utc(start, tz),
        end_time=to_utc(start + timedelta(minutes=duration_minutes), tz),
        duration_minutes=duration_minutes,
        status=status,
        title=title,
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment
