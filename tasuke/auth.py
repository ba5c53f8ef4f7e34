import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import ApiToken, User

logger = logging.getLogger(__name__)

security = HTTPBearer()

TOKEN_PREFIX = "tsk_"


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store and look up API tokens"""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_api_token() -> str:
    return TOKEN_PREFIX + secrets.token_hex(32)


def create_api_token(
    db: Session, user: User, name: Optional[str] = None, expires_in_days: Optional[int] = None
) -> str:
    """
    Issue a new API token for a user.
    Only the hash is persisted; the plain token is returned once to the caller.
    """
    token = generate_api_token()
    expires_at = datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days else None
    db.add(ApiToken(user_id=user.id, name=name, token_hash=hash_token(token), expires_at=expires_at))
    db.commit()
    logger.info(f"🔑 API token issued for user {user.id}")
    return token


def validate_api_token(db: Session, token: str) -> Optional[ApiToken]:
    """Return the matching active token row, or None when unknown, revoked or expired"""
    api_token = db.query(ApiToken).filter(ApiToken.token_hash == hash_token(token)).first()
    if not api_token:
        return None
    if api_token.revoked_at:
        return None
    if api_token.expires_at and api_token.expires_at < datetime.utcnow():
        return None

    api_token.last_used_at = datetime.utcnow()
    db.commit()
    return api_token


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from a bearer API token"""
    api_token = validate_api_token(db, credentials.credentials)
    if not api_token:
        logger.warning("❌ Rejected request with invalid or expired API token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.query(User).filter(User.id == api_token.user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
