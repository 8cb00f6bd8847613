"""
NAE Test Sheets - Auth API Endpoints
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Email login restricted to allowed domains, logout,
                      current user, profile completion
"""

from fastapi import APIRouter, Depends, Request, Response
import logging

from api.deps import get_current_user
from config import settings
from database import get_db
from errors import EmailDomainError
from models.user import LoginRequest, ProfileUpdate, User, UserView
from services.email_validation import (
    MSG_MALFORMED, MSG_REQUIRED, get_email_validation_error,
)
from services.session_store import create_session, destroy_session
from services.user_store import get_or_create_user, record_login, update_profile
from services.validation import display_name, needs_profile_setup

router = APIRouter()
logger = logging.getLogger(__name__)


def user_view(user: User) -> dict:
    view = UserView(
        **user.model_dump(),
        needs_profile_setup=needs_profile_setup(user),
        display_name=display_name(user),
    )
    return view.model_dump(by_alias=True)


@router.post("/login")
async def login(data: LoginRequest, request: Request, response: Response):
    """Sign in with an email on an allowed domain; creates the user on first login"""
    email = data.email.strip()
    error = get_email_validation_error(email)
    if error:
        status = 400 if error in (MSG_REQUIRED, MSG_MALFORMED) else 403
        logger.info(f"Login rejected for '{email}': {error}")
        raise EmailDomainError(error, status_code=status)

    async with get_db() as db:
        user = await get_or_create_user(db, email.lower(), first_name=data.username.strip() or None)
        await record_login(
            db, user,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        session = await create_session(db, user.id)

    response.set_cookie(
        settings.SESSION_COOKIE_NAME, session.sid,
        max_age=settings.SESSION_TTL_HOURS * 3600,
        httponly=True, samesite="lax",
    )
    logger.info(f"User {user.id} logged in")
    return {"user": user_view(user)}


@router.post("/logout")
async def logout(request: Request, response: Response):
    sid = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if sid:
        async with get_db() as db:
            await destroy_session(db, sid)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/user")
async def current_user(user: User = Depends(get_current_user)):
    return user_view(user)


@router.post("/complete-profile")
async def complete_profile(data: ProfileUpdate, user: User = Depends(get_current_user)):
    async with get_db() as db:
        updated = await update_profile(db, user.id, data.first_name, data.last_name)
    return user_view(updated)
