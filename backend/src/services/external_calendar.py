# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false
"""
External calendar adapters.

An adapter projects a third-party calendar into read-only busy blocks for a
professional. Adapters may raise on failure; the conflict detector turns any
failure into "no external data" and flags the result as partial.
"""

import logging
from datetime import datetime, time
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from models import User
from services.google_calendar_service import GoogleCalendarService
from shared_types.scheduling import ExternalBusyBlock
from utils.datetime_utils import parse_date_string, parse_iso_datetime

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_SOURCE = "google_calendar"


class ExternalCalendarAdapter(Protocol):
    """Lists a professional's external busy blocks overlapping [start, end)."""

    def list_busy_blocks(self, professional_id: int, start: datetime, end: datetime) -> List[ExternalBusyBlock]:
        ...


class NullExternalCalendarAdapter:
    """Adapter for deployments without external calendars."""

    def list_busy_blocks(self, professional_id: int, start: datetime, end: datetime) -> List[ExternalBusyBlock]:
        return []


def event_to_busy_block(event: Dict[str, Any], professional_id: int, window_start: datetime) -> Optional[ExternalBusyBlock]:
    """
    Convert a Google Calendar event resource into a busy block.

    Cancelled events and events marked "free" (transparent) do not block time.
    All-day events block whole days, expressed in the timezone of `window_start`.

    Args:
        event: Google Calendar event resource
        professional_id: Owner of the calendar
        window_start: Timezone-aware start of the queried window

    Returns:
        Busy block, or None if the event does not block time
    """
    if event.get('status') == 'cancelled' or event.get('transparency') == 'transparent':
        return None

    start_info: Dict[str, Any] = event.get('start') or {}
    end_info: Dict[str, Any] = event.get('end') or {}

    if start_info.get('dateTime') and end_info.get('dateTime'):
        start = parse_iso_datetime(start_info['dateTime'])
        end = parse_iso_datetime(end_info['dateTime'])
    elif start_info.get('date') and end_info.get('date'):
        tz = window_start.tzinfo
        start = datetime.combine(parse_date_string(start_info['date']), time.min, tzinfo=tz)
        end = datetime.combine(parse_date_string(end_info['date']), time.min, tzinfo=tz)
    else:
        logger.debug(f"Skipping Google Calendar event without start/end: {event.get('id')}")
        return None

    if start is None or end is None or end <= start:
        return None

    return ExternalBusyBlock(
        professional_id=professional_id,
        start=start,
        end=end,
        title=event.get('summary') or "Busy",
        source=GOOGLE_CALENDAR_SOURCE,
        external_id=event.get('id'),
    )


class GoogleCalendarAdapter:
    """
    Busy blocks from professionals' Google Calendars.

    Professionals without sync enabled or without stored credentials simply
    have no external blocks.
    """

    def __init__(
        self,
        db: Session,
        service_factory: Callable[[str, str], GoogleCalendarService] = GoogleCalendarService,
    ) -> None:
        self.db = db
        self.service_factory = service_factory

    def list_busy_blocks(self, professional_id: int, start: datetime, end: datetime) -> List[ExternalBusyBlock]:
        """
        List busy blocks for a professional.

        Args:
            professional_id: Professional whose calendar to read
            start: Timezone-aware window start
            end: Timezone-aware window end

        Raises:
            GoogleCalendarError: If credentials are invalid or the API call fails
        """
        user = self.db.get(User, professional_id)
        if user is None or not user.has_external_calendar or user.gcal_credentials is None:
            return []

        service = self.service_factory(user.gcal_credentials, user.gcal_calendar_id)
        blocks: List[ExternalBusyBlock] = []
        for event in service.list_events(start, end):
            block = event_to_busy_block(event, professional_id, start)
            if block is not None:
                blocks.append(block)
        return blocks
