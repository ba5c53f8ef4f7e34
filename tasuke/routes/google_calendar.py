"""
Google Calendar Integration Routes
Handles OAuth connection for the calendar feed used by scheduling
"""

import logging
from datetime import datetime, timedelta
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from ..database import get_db
from ..models import GoogleCalendarIntegration, User
from ..services.google_calendar_service import (
    GoogleCalendarError,
    decrypt_token,
    encrypt_token,
    exchange_code_for_tokens,
    revoke_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


class OAuthCallback(BaseModel):
    code: str


def _find_integration(user: User, db: Session):
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.user_id == user.id)
        .first()
    )


@router.get("/status")
async def get_google_calendar_status(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Get Google Calendar connection status"""
    integration = _find_integration(current_user, db)
    if not integration:
        return {"connected": False, "user_email": None, "calendar_id": None}

    return {
        "connected": True,
        "user_email": integration.google_user_email,
        "calendar_id": integration.google_calendar_id,
    }


@router.get("/connect")
async def initiate_google_calendar_oauth(current_user: User = Depends(get_current_user)):
    """Initiate Google Calendar OAuth flow"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    query = urlencode(
        {
            "client_id": GOOGLE_CLIENT_ID,
            "redirect_uri": GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": str(current_user.id),
        }
    )
    logger.info(f"Google Calendar OAuth initiated for user: {current_user.email}")
    return {"authorization_url": f"{GOOGLE_AUTH_URL}?{query}"}


@router.post("/callback")
async def handle_google_calendar_callback(
    data: OAuthCallback,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Store the tokens from a completed OAuth flow"""
    try:
        account = await exchange_code_for_tokens(data.code)
    except GoogleCalendarError as e:
        raise HTTPException(status_code=e.status_code or 400, detail=e.message) from e

    token_expires_at = datetime.utcnow() + timedelta(seconds=account["expires_in"])
    integration = _find_integration(current_user, db)
    if integration is None:
        integration = GoogleCalendarIntegration(user_id=current_user.id)
        db.add(integration)

    integration.access_token = encrypt_token(account["access_token"])
    integration.refresh_token = encrypt_token(account["refresh_token"])
    integration.token_expires_at = token_expires_at
    integration.google_user_email = account["email"]
    integration.google_calendar_id = account["calendar_id"]
    db.commit()

    logger.info(f"✅ Google Calendar connected for user: {current_user.email}")
    return {
        "success": True,
        "message": "Google Calendar connected successfully",
        "user_email": account["email"],
    }


@router.post("/disconnect")
async def disconnect_google_calendar(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Disconnect Google Calendar integration"""
    integration = _find_integration(current_user, db)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")

    try:
        await revoke_token(decrypt_token(integration.access_token))
    except Exception as e:
        # Revocation is best effort; the local credentials are removed regardless
        logger.warning(f"Failed to revoke Google tokens: {str(e)}")

    db.delete(integration)
    db.commit()

    logger.info(f"✅ Google Calendar disconnected for user: {current_user.email}")
    return {"success": True, "message": "Google Calendar disconnected"}
