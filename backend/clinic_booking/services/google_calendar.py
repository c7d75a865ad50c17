"""
backend/clinic_booking/services/google_calendar.py

Google Calendar client for professionals' calendars.

Handles:
- Access token refresh
- Calendar event create/update for appointments
"""

import logging
from datetime import datetime

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import settings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/calendar.events"]
TOKEN_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _credentials(access_token: str | None, refresh_token: str) -> Credentials:
    return Credentials(
        token=access_token,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        scopes=SCOPES,
    )


def refresh_access_token(refresh_token: str) -> dict:
    """
    Refresh an expired access token.

    Returns:
        {"access_token": str, "token_expires_at": str | None}

    Raises:
        ValueError: If refresh fails (token revoked or invalid)
    """
    credentials = _credentials(None, refresh_token)

    try:
        credentials.refresh(Request())
    except RefreshError as e:
        logger.error(f"Token refresh failed: {e}")
        raise ValueError(f"Token refresh failed: {e}")

    expires_at = None
    if credentials.expiry:
        expires_at = credentials.expiry.strftime(TOKEN_TIME_FORMAT)

    return {
        "access_token": credentials.token,
        "token_expires_at": expires_at,
    }


def _get_calendar_service(access_token: str, refresh_token: str, timeout: float):
    """Build a Calendar API client whose HTTP calls time out after `timeout` seconds."""
    http = google_auth_httplib2.AuthorizedHttp(
        _credentials(access_token, refresh_token),
        http=httplib2.Http(timeout=timeout),
    )
    return build("calendar", "v3", http=http, cache_discovery=False)


def build_event_body(appointment: dict, timezone: str) -> dict:
    """
    Calendar event body for an appointment.

    appointment keys: date ("YYYY-MM-DD"), start_time, end_time ("HH:MM"),
    client_name, client_phone?, client_email?, service_name, notes?
    """
    client_name = appointment.get("client_name") or "Patient"
    service_name = appointment.get("service_name") or "Consultation"

    description_parts = [f"Patient: {client_name}"]
    if appointment.get("client_phone"):
        description_parts.append(f"Phone: {appointment['client_phone']}")
    description_parts.append(f"Service: {service_name}")
    if appointment.get("notes"):
        description_parts.append(f"Notes: {appointment['notes']}")

    day = appointment["date"]
    start = datetime.fromisoformat(f"{day}T{appointment['start_time']}")
    end = datetime.fromisoformat(f"{day}T{appointment['end_time']}")

    event = {
        "summary": f"{client_name} - {service_name}",
        "description": "\n".join(description_parts),
        "start": {
            "dateTime": start.isoformat(),
            "timeZone": timezone,
        },
        "end": {
            "dateTime": end.isoformat(),
            "timeZone": timezone,
        },
    }
    if appointment.get("client_email"):
        event["attendees"] = [{"email": appointment["client_email"]}]
    return event


def create_event(
    access_token: str,
    refresh_token: str,
    calendar_id: str,
    event: dict,
    timeout: float = 10.0,
) -> dict:
    """
    Create a calendar event.

    Returns:
        {"event_id": str, "html_link": str}

    Raises:
        HttpError: If API call fails
    """
    service = _get_calendar_service(access_token, refresh_token, timeout)

    try:
        created_event = service.events().insert(
            calendarId=calendar_id,
            body=event,
        ).execute()
    except HttpError as e:
        logger.error(f"Failed to create calendar event: {e}")
        raise

    logger.info(f"Created Google Calendar event: {created_event.get('id')}")
    return {
        "event_id": created_event.get("id"),
        "html_link": created_event.get("htmlLink"),
    }


def update_event(
    access_token: str,
    refresh_token: str,
    calendar_id: str,
    event_id: str,
    event: dict,
    timeout: float = 10.0,
) -> dict:
    """
    Replace an existing calendar event.

    Raises:
        HttpError: If API call fails
    """
    service = _get_calendar_service(access_token, refresh_token, timeout)

    try:
        updated_event = service.events().update(
            calendarId=calendar_id,
            eventId=event_id,
            body=event,
        ).execute()
    except HttpError as e:
        logger.error(f"Failed to update calendar event {event_id}: {e}")
        raise

    logger.info(f"Updated Google Calendar event: {event_id}")
    return {
        "event_id": updated_event.get("id"),
        "html_link": updated_event.get("htmlLink"),
    }
