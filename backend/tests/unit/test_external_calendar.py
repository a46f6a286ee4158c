"""
Unit tests for the Google Calendar service and external calendar adapters.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import Mock, patch
from zoneinfo import ZoneInfo

from googleapiclient.errors import HttpError

from models import User
from services.external_calendar import GoogleCalendarAdapter, NullExternalCalendarAdapter, event_to_busy_block
from services.google_calendar_service import GoogleCalendarError, GoogleCalendarService

SAO_PAULO = ZoneInfo("America/Sao_Paulo")
WINDOW_START = datetime(2025, 1, 16, 8, 0, tzinfo=SAO_PAULO)
WINDOW_END = datetime(2025, 1, 16, 18, 0, tzinfo=SAO_PAULO)


def _timed_event(event_id: str, start: str, end: str, **extra):
    event = {"id": event_id, "summary": "Meeting", "start": {"dateTime": start}, "end": {"dateTime": end}}
    event.update(extra)
    return event


class TestEventToBusyBlock:
    """Test projection of Google Calendar events into busy blocks."""

    def test_timed_event(self):
        block = event_to_busy_block(
            _timed_event("evt1", "2025-01-16T17:00:00Z", "2025-01-16T18:00:00Z"), 4, WINDOW_START
        )
        assert block is not None
        assert block.start == datetime(2025, 1, 16, 17, 0, tzinfo=timezone.utc)
        assert block.external_id == "evt1"
        assert block.title == "Meeting"
        assert block.source == "google_calendar"
        assert block.professional_id == 4

    def test_cancelled_event_ignored(self):
        event = _timed_event("evt2", "2025-01-16T17:00:00Z", "2025-01-16T18:00:00Z", status="cancelled")
        assert event_to_busy_block(event, 4, WINDOW_START) is None

    def test_transparent_event_ignored(self):
        event = _timed_event("evt3", "2025-01-16T17:00:00Z", "2025-01-16T18:00:00Z", transparency="transparent")
        assert event_to_busy_block(event, 4, WINDOW_START) is None

    def test_all_day_event_blocks_whole_day(self):
        event = {"id": "evt4", "start": {"date": "2025-01-16"}, "end": {"date": "2025-01-17"}}
        block = event_to_busy_block(event, 4, WINDOW_START)
        assert block is not None
        assert block.start == datetime(2025, 1, 16, 0, 0, tzinfo=SAO_PAULO)
        assert block.end == datetime(2025, 1, 17, 0, 0, tzinfo=SAO_PAULO)
        assert block.title == "Busy"

    def test_event_without_times_ignored(self):
        assert event_to_busy_block({"id": "evt5"}, 4, WINDOW_START) is None


class TestGoogleCalendarAdapter:
    """Test the adapter that reads professionals' Google Calendars."""

    def _user(self, db_session, **kwargs) -> User:
        user = User(email="gcal@example.com", **kwargs)
        db_session.add(user)
        db_session.commit()
        return user

    def test_user_without_sync_has_no_blocks(self, db_session):
        user = self._user(db_session, gcal_sync_enabled=False, gcal_credentials='{"refresh_token": "x"}')
        factory = Mock()
        adapter = GoogleCalendarAdapter(db_session, service_factory=factory)

        assert adapter.list_busy_blocks(user.id, WINDOW_START, WINDOW_END) == []
        factory.assert_not_called()

    def test_unknown_user_has_no_blocks(self, db_session):
        adapter = GoogleCalendarAdapter(db_session, service_factory=Mock())
        assert adapter.list_busy_blocks(999, WINDOW_START, WINDOW_END) == []

    def test_lists_busy_blocks(self, db_session):
        user = self._user(
            db_session,
            gcal_sync_enabled=True,
            gcal_credentials='{"refresh_token": "x"}',
            gcal_calendar_id="work@example.com",
        )
        service = Mock()
        service.list_events.return_value = [
            _timed_event("evt1", "2025-01-16T17:00:00Z", "2025-01-16T18:00:00Z"),
            _timed_event("evt2", "2025-01-16T19:00:00Z", "2025-01-16T20:00:00Z", status="cancelled"),
            {"id": "evt3", "start": {"date": "2025-01-16"}, "end": {"date": "2025-01-17"}},
        ]
        factory = Mock(return_value=service)
        adapter = GoogleCalendarAdapter(db_session, service_factory=factory)

        blocks = adapter.list_busy_blocks(user.id, WINDOW_START, WINDOW_END)

        factory.assert_called_once_with('{"refresh_token": "x"}', "work@example.com")
        service.list_events.assert_called_once_with(WINDOW_START, WINDOW_END)
        assert [block.external_id for block in blocks] == ["evt1", "evt3"]

    def test_service_errors_propagate(self, db_session):
        user = self._user(db_session, gcal_sync_enabled=True, gcal_credentials='{"refresh_token": "x"}')
        factory = Mock(side_effect=GoogleCalendarError("invalid credentials"))
        adapter = GoogleCalendarAdapter(db_session, service_factory=factory)

        with pytest.raises(GoogleCalendarError):
            adapter.list_busy_blocks(user.id, WINDOW_START, WINDOW_END)

    def test_null_adapter(self):
        assert NullExternalCalendarAdapter().list_busy_blocks(4, WINDOW_START, WINDOW_END) == []


class TestGoogleCalendarService:
    """Test the Google Calendar API client wrapper."""

    def test_invalid_credentials_json(self):
        with pytest.raises(GoogleCalendarError):
            GoogleCalendarService("not json")

    @patch("services.google_calendar_service.build")
    @patch("services.google_calendar_service.Credentials")
    def test_list_events_follows_pages(self, mock_credentials, mock_build):
        mock_credentials.from_authorized_user_info.return_value = Mock(expired=False)
        api = mock_build.return_value
        list_call = api.events.return_value.list
        list_call.return_value.execute.side_effect = [
            {"items": [{"id": "a"}], "nextPageToken": "page-2"},
            {"items": [{"id": "b"}]},
        ]

        service = GoogleCalendarService('{"refresh_token": "x"}', "primary")
        events = service.list_events(WINDOW_START, WINDOW_END)

        assert [event["id"] for event in events] == ["a", "b"]
        assert list_call.call_count == 2
        first_kwargs = list_call.call_args_list[0].kwargs
        assert first_kwargs["calendarId"] == "primary"
        assert first_kwargs["singleEvents"] is True
        assert first_kwargs["timeMin"] == "2025-01-16T11:00:00+00:00"
        assert first_kwargs["pageToken"] is None
        assert list_call.call_args_list[1].kwargs["pageToken"] == "page-2"

    @patch("services.google_calendar_service.build")
    @patch("services.google_calendar_service.Credentials")
    def test_http_error_wrapped(self, mock_credentials, mock_build):
        mock_credentials.from_authorized_user_info.return_value = Mock(expired=False)
        api = mock_build.return_value
        api.events.return_value.list.return_value.execute.side_effect = HttpError(
            Mock(status=500, reason="Server Error"), b"error"
        )

        service = GoogleCalendarService('{"refresh_token": "x"}')
        with pytest.raises(GoogleCalendarError):
            service.list_events(WINDOW_START, WINDOW_END)
