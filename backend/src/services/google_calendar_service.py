# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportMissingTypeStubs=false
"""
Google Calendar service for reading professionals' external calendars.

The scheduling engine only reads Google Calendar: events on a professional's
calendar are projected into busy blocks that make slots unavailable.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET

logger = logging.getLogger(__name__)


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""
    pass


def _to_utc_rfc3339(value: datetime) -> str:
    # Google requires an explicit offset; naive values are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class GoogleCalendarService:
    """
    Service for Google Calendar API read operations.

    Attributes:
        credentials: Google OAuth2 credentials for API access
        calendar_id: Google Calendar ID (defaults to primary calendar)
        service: Google Calendar API service client
    """

    # Default calendar ID (primary calendar)
    DEFAULT_CALENDAR_ID = 'primary'

    def __init__(self, credentials_json: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> None:
        """
        Initialize Google Calendar service.

        Args:
            credentials_json: JSON string containing Google OAuth2 authorized-user credentials
            calendar_id: Google Calendar ID to operate on (defaults to primary)

        Raises:
            GoogleCalendarError: If credentials are invalid or service initialization fails
        """
        try:
            creds_data = json.loads(credentials_json)
            creds_data.update({
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET
            })
            self.credentials = Credentials.from_authorized_user_info(creds_data)

            # Refresh token if expired
            if self.credentials.expired and self.credentials.refresh_token:
                self.credentials.refresh(Request())

            self.service = build('calendar', 'v3', credentials=self.credentials, cache_discovery=False)
            self.calendar_id = calendar_id

        except json.JSONDecodeError as e:
            raise GoogleCalendarError(f"Invalid credentials JSON: {e}")
        except Exception as e:
            raise GoogleCalendarError(f"Failed to initialize Google Calendar service: {e}")

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """
        List single (expanded) events overlapping a time window.

        Follows nextPageToken until every page has been read.

        Args:
            time_min: Window start
            time_max: Window end

        Returns:
            Raw Google Calendar event resources

        Raises:
            GoogleCalendarError: If the API request fails
        """
        events: List[Dict[str, Any]] = []
        next_page_token: Optional[str] = None
        try:
            while True:
                request = self.service.events().list(  # type: ignore
                    calendarId=self.calendar_id,
                    timeMin=_to_utc_rfc3339(time_min),
                    timeMax=_to_utc_rfc3339(time_max),
                    singleEvents=True,
                    orderBy='startTime',
                    pageToken=next_page_token
                )
                events_result: Dict[str, Any] = request.execute()  # type: ignore
                events.extend(events_result.get('items', []))
                next_page_token = events_result.get('nextPageToken')
                if not next_page_token:
                    break
        except HttpError as e:
            raise GoogleCalendarError(f"Failed to list Google Calendar events: {e}")

        logger.debug(f"Fetched {len(events)} Google Calendar events for calendar {self.calendar_id}")
        return events
