"""
NAE Test Sheets - Request Dependencies
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Session-cookie authentication dependency
"""

from fastapi import Request

from config import settings
from database import get_db
from errors import AuthenticationError
from models.user import User
from services.session_store import get_session_user_id
from services.user_store import get_user


async def get_current_user(request: Request) -> User:
    """Resolve the session cookie to a user; expired sessions count as absent"""
    sid = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not sid:
        raise AuthenticationError("Not authenticated")
    async with get_db() as db:
        user_id = await get_session_user_id(db, sid)
        user = await get_user(db, user_id) if user_id else None
    if user is None:
        raise AuthenticationError("Session expired or invalid")
    return user
