"""
Google Calendar Service
Reads the busy-time feed for scheduling and writes accepted schedule blocks
"""
import base64
import hashlib
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from ..config import (
    CALENDAR_EVENT_PREFIX,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    SCHEDULE_TIMEZONE,
    SECRET_KEY,
)
from ..domain.scheduling.types import CalendarEvent
from ..models import GoogleCalendarIntegration, Task, User

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

REQUEST_TIMEOUT = 15.0
MAX_EVENT_RESULTS = 250

# Google Calendar colorId per task priority
PRIORITY_COLOR_MAP = {"P0": "11", "P1": "5", "P2": "9", "P3": "8"}
DEFAULT_COLOR_ID = "8"


class GoogleCalendarError(Exception):
    """A Google Calendar call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CalendarNotConnectedError(GoogleCalendarError):
    def __init__(self):
        super().__init__("Google Calendar is not connected")


def _cipher() -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return _cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return _cipher().decrypt(token.encode()).decode()


def _error_message(response: httpx.Response) -> str:
    """Human readable message for a failed Google API response"""
    if response.status_code == 401:
        return "Google authorization has expired. Please reconnect Google Calendar"
    if response.status_code == 403:
        return "No permission to access Google Calendar"
    try:
        message = response.json().get("error", {}).get("message")
    except (ValueError, AttributeError):
        message = None
    if message:
        return f"Google API error: {message}"
    return "An error occurred while communicating with Google Calendar"


def get_integration(user: User, db: Session) -> GoogleCalendarIntegration:
    integration = (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.user_id == user.id)
        .first()
    )
    if not integration:
        raise CalendarNotConnectedError()
    return integration


async def get_valid_access_token(integration: GoogleCalendarIntegration, db: Session) -> str:
    """
    Get a valid access token, refreshing it when it expires within 5 minutes
    """
    try:
        if integration.token_expires_at > datetime.utcnow() + timedelta(minutes=5):
            return decrypt_token(integration.access_token)

        logger.info("🔄 Google Calendar token expired, refreshing...")
        refresh_token = decrypt_token(integration.refresh_token)
    except InvalidToken as e:
        logger.error("❌ Stored Google Calendar token could not be decrypted")
        raise GoogleCalendarError("Stored Google credentials are invalid. Please reconnect") from e

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

    if response.status_code != 200:
        logger.error(f"❌ Token refresh failed: {response.text}")
        raise GoogleCalendarError(_error_message(response), response.status_code)

    tokens = response.json()
    new_access_token = tokens.get("access_token")
    if not new_access_token:
        logger.error("❌ No access token in refresh response")
        raise GoogleCalendarError("Google did not return an access token")

    integration.access_token = encrypt_token(new_access_token)
    integration.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    db.commit()

    logger.info("✅ Google Calendar token refreshed successfully")
    return new_access_token


def _parse_event_time(value: dict) -> datetime | date:
    if value.get("dateTime"):
        return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
    return date.fromisoformat(value["date"])


def normalize_event(item: dict) -> Optional[CalendarEvent]:
    """
    Convert a Google Calendar event resource into a busy interval.
    Cancelled and malformed events are skipped.
    """
    if item.get("status") == "cancelled":
        return None

    start = item.get("start") or {}
    end = item.get("end") or {}
    try:
        return CalendarEvent(
            start=_parse_event_time(start),
            end=_parse_event_time(end),
            all_day=bool(start.get("date")),
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"⚠️ Skipping calendar event {item.get('id')} with unparsable time: {e}")
        return None


async def _fetch_event_items(
    user: User, db: Session, time_min: datetime, time_max: datetime, fields: str
) -> list[dict]:
    integration = get_integration(user, db)
    access_token = await get_valid_access_token(integration, db)
    calendar_id = integration.google_calendar_id or "primary"

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        response = await client.get(
            f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
            headers={"Authorization": f"Bearer {access_token}"},
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": MAX_EVENT_RESULTS,
                "timeZone": SCHEDULE_TIMEZONE,
                "fields": fields,
            },
        )

    if response.status_code != 200:
        logger.error(f"❌ Failed to list calendar events: {response.text}")
        raise GoogleCalendarError(_error_message(response), response.status_code)

    return response.json().get("items", [])


async def list_busy_events(
    user: User, db: Session, time_min: datetime, time_max: datetime
) -> list[CalendarEvent]:
    """Busy intervals from the user's calendar, cancelled events excluded"""
    items = await _fetch_event_items(
        user, db, time_min, time_max, fields="items(id,start,end,status)"
    )
    events = [event for event in (normalize_event(item) for item in items) if event]
    logger.info(f"📅 Loaded {len(events)} busy events for user {user.id}")
    return events


async def list_events(
    user: User, db: Session, time_min: datetime, time_max: datetime
) -> list[dict[str, Any]]:
    """Calendar events for display"""
    items = await _fetch_event_items(
        user, db, time_min, time_max, fields="items(id,summary,start,end,status,colorId)"
    )
    return [
        {
            "id": item.get("id"),
            "summary": item.get("summary") or "(no title)",
            "start": item.get("start", {}).get("dateTime") or item.get("start", {}).get("date", ""),
            "end": item.get("end", {}).get("dateTime") or item.get("end", {}).get("date", ""),
            "allDay": bool(item.get("start", {}).get("date")),
            "colorId": item.get("colorId"),
        }
        for item in items
        if item.get("status") != "cancelled"
    ]


async def create_task_block_event(
    user: User, task: Task, block_date: date, start: time, end: time, db: Session
) -> str:
    """
    Create a time-block event for a task.
    Returns the Google Calendar event ID.
    """
    integration = get_integration(user, db)
    access_token = await get_valid_access_token(integration, db)
    calendar_id = integration.google_calendar_id or "primary"

    event_data = {
        "summary": f"{CALENDAR_EVENT_PREFIX} {task.title}",
        "start": {
            "dateTime": datetime.combine(block_date, start).isoformat(),
            "timeZone": SCHEDULE_TIMEZONE,
        },
        "end": {
            "dateTime": datetime.combine(block_date, end).isoformat(),
            "timeZone": SCHEDULE_TIMEZONE,
        },
        "colorId": PRIORITY_COLOR_MAP.get(task.priority, DEFAULT_COLOR_ID),
    }
    if task.description:
        event_data["description"] = task.description

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        response = await client.post(
            f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
            headers={"Authorization": f"Bearer {access_token}"},
            json=event_data,
        )

    if response.status_code not in (200, 201):
        logger.error(f"❌ Failed to create calendar event: {response.text}")
        raise GoogleCalendarError(_error_message(response), response.status_code)

    event_id = response.json().get("id")
    if not event_id:
        raise GoogleCalendarError("Google did not return an event ID")

    logger.info(f"✅ Google Calendar event created: {event_id}")
    return event_id


async def delete_calendar_event(user: User, google_event_id: str, db: Session) -> None:
    """
    Delete a Google Calendar event. An event that is already gone counts as deleted.
    """
    integration = get_integration(user, db)
    access_token = await get_valid_access_token(integration, db)
    calendar_id = integration.google_calendar_id or "primary"

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        response = await client.delete(
            f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{google_event_id}",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if response.status_code in (404, 410):
        logger.info(f"ℹ️ Google Calendar event {google_event_id} was already deleted")
        return
    if response.status_code not in (200, 204):
        logger.error(f"❌ Failed to delete calendar event: {response.text}")
        raise GoogleCalendarError(_error_message(response), response.status_code)

    logger.info(f"✅ Google Calendar event deleted: {google_event_id}")


async def exchange_code_for_tokens(code: str) -> dict:
    """Exchange an OAuth authorization code and look up the Google account"""
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        if token_response.status_code != 200:
            logger.error(f"Token exchange failed: {token_response.text}")
            raise GoogleCalendarError("Failed to exchange authorization code", 400)

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        if not access_token or not tokens.get("refresh_token"):
            raise GoogleCalendarError("Invalid token response", 400)

        user_info_response = await client.get(
            GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
        )
        if user_info_response.status_code != 200:
            logger.error(f"Failed to get user info: {user_info_response.text}")
            raise GoogleCalendarError("Failed to get user info", 400)

        calendar_response = await client.get(
            f"{GOOGLE_CALENDAR_API}/users/me/calendarList/primary",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        calendar_id = "primary"
        if calendar_response.status_code == 200:
            calendar_id = calendar_response.json().get("id", "primary")

    return {
        "access_token": access_token,
        "refresh_token": tokens["refresh_token"],
        "expires_in": tokens.get("expires_in", 3600),
        "email": user_info_response.json().get("email"),
        "calendar_id": calendar_id,
    }


async def revoke_token(token: str) -> None:
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        await client.post(GOOGLE_REVOKE_URL, params={"token": token})
