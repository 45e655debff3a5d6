"""
backend/consult_booking/services/google_calendar.py

Google Calendar integration: the external calendar oracle.

Handles:
- Service-account or OAuth refresh-token credentials
- Listing timed events in a window (busy intervals)
- Creating / deleting the event that mirrors a reservation

Components never talk to Google directly; they receive a CalendarOracle.
When no credentials are configured build_calendar() returns an
UnconfiguredCalendar: empty busy set, creation skipped, deletion no-op.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

import httplib2
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import Settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class CalendarError(Exception):
    """Calendar provider call failed."""


class CalendarUnavailableError(CalendarError):
    """Calendar provider could not be reached or answered with an error."""


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str
    start: Optional[datetime]  # None for whole-day events
    end: Optional[datetime]

    @property
    def is_timed(self) -> bool:
        return self.start is not None and self.end is not None


class CalendarOracle(Protocol):
    configured: bool

    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]: ...

    def create_event(
        self, summary: str, description: str, start: datetime, end: datetime
    ) -> Optional[str]: ...

    def delete_event(self, event_id: str) -> bool: ...


class UnconfiguredCalendar:
    """Calendar integration switched off."""

    configured = False

    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        return []

    def create_event(
        self, summary: str, description: str, start: datetime, end: datetime
    ) -> Optional[str]:
        logger.info("Google Calendar not configured, skipping event creation")
        return None

    def delete_event(self, event_id: str) -> bool:
        logger.info(f"Google Calendar not configured, skipping deletion of {event_id}")
        return False


def _parse_event_time(value: dict) -> Optional[datetime]:
    """Parse event start/end; whole-day events (only "date") yield None."""
    raw = value.get("dateTime")
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _to_event(item: dict) -> CalendarEvent:
    return CalendarEvent(
        id=item.get("id", ""),
        summary=item.get("summary", ""),
        start=_parse_event_time(item.get("start", {})),
        end=_parse_event_time(item.get("end", {})),
    )


class GoogleCalendar:
    """Calendar oracle backed by the Google Calendar v3 API."""

    configured = True

    def __init__(self, credentials, calendar_id: str = "primary", timeout: float = 10.0):
        self.calendar_id = calendar_id
        self._credentials = credentials
        self._timeout = timeout

    def _service(self):
        # httplib2.Http is not thread-safe; build per call.
        http = AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=self._timeout))
        return build("calendar", "v3", http=http, cache_discovery=False)

    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        """
        List events overlapping [time_min, time_max).

        Raises:
            CalendarUnavailableError: provider unreachable or returned an error
        """
        events: list[CalendarEvent] = []
        page_token = None
        try:
            service = self._service()
            while True:
                response = service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=time_min.astimezone(timezone.utc).isoformat(),
                    timeMax=time_max.astimezone(timezone.utc).isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                ).execute()
                events.extend(_to_event(item) for item in response.get("items", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except Exception as e:
            logger.error(f"Failed to list calendar events {time_min}..{time_max}: {e}")
            raise CalendarUnavailableError(str(e)) from e

        return events

    def create_event(
        self, summary: str, description: str, start: datetime, end: datetime
    ) -> Optional[str]:
        """
        Create an event and return its id.

        Raises:
            CalendarError: If API call fails
        """
        event = {
            "summary": summary,
            "description": description,
            "start": {
                "dateTime": start.astimezone(timezone.utc).isoformat(),
                "timeZone": "UTC",
            },
            "end": {
                "dateTime": end.astimezone(timezone.utc).isoformat(),
                "timeZone": "UTC",
            },
        }

        try:
            created_event = self._service().events().insert(
                calendarId=self.calendar_id,
                body=event,
            ).execute()
        except Exception as e:
            logger.error(f"Failed to create calendar event: {e}")
            raise CalendarError(str(e)) from e

        logger.info(f"Created Google Calendar event: {created_event.get('id')}")
        return created_event.get("id")

    def delete_event(self, event_id: str) -> bool:
        """
        Delete an event. An already deleted event counts as success.

        Raises:
            CalendarError: If API call fails
        """
        try:
            self._service().events().delete(
                calendarId=self.calendar_id,
                eventId=event_id,
            ).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                logger.warning(f"Calendar event not found: {event_id}")
                return True
            logger.error(f"Failed to delete calendar event: {e}")
            raise CalendarError(str(e)) from e
        except Exception as e:
            logger.error(f"Failed to delete calendar event: {e}")
            raise CalendarError(str(e)) from e

        logger.info(f"Deleted Google Calendar event: {event_id}")
        return True


def _build_credentials(settings: Settings):
    """Service account first, OAuth refresh token second, else None."""
    if settings.google_service_account_email and settings.google_private_key:
        logger.info("Google Calendar: using service account")
        return service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": settings.google_service_account_email,
                "private_key": settings.resolved_google_private_key,
                "token_uri": TOKEN_URI,
            },
            scopes=SCOPES,
        )

    if settings.google_client_id and settings.google_client_secret and settings.google_refresh_token:
        logger.info("Google Calendar: using OAuth refresh token")
        return Credentials(
            token=None,
            refresh_token=settings.google_refresh_token,
            token_uri=TOKEN_URI,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            scopes=SCOPES,
        )

    return None


def build_calendar(settings: Settings) -> CalendarOracle:
    """Calendar oracle for the configured credentials."""
    credentials = _build_credentials(settings)
    if credentials is None:
        logger.warning("Google Calendar credentials not configured, calendar features disabled")
        return UnconfiguredCalendar()
    return GoogleCalendar(
        credentials,
        calendar_id=settings.google_calendar_id,
        timeout=settings.google_timeout_seconds,
    )
