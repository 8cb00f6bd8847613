"""
NAE Test Sheets - User Store
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Users, profile completion, login history

All functions take an open aiosqlite connection (see database.get_db) and
commit their own writes.
"""

import logging
import uuid
from typing import List, Optional

from database import execute_one, execute_all, execute_scalar, now_epoch
from errors import NotFoundError, SheetValidationError, FieldError
from models.user import User, UserLogin

logger = logging.getLogger(__name__)


async def get_user(db, user_id: str) -> Optional[User]:
    row = await execute_one(db, "SELECT * FROM users WHERE id = ?", (user_id,))
    return User.model_validate(row) if row else None


async def get_user_by_email(db, email: str) -> Optional[User]:
    row = await execute_one(db, "SELECT * FROM users WHERE lower(email) = lower(?)", (email,))
    return User.model_validate(row) if row else None


async def create_user(db, email: str, first_name: Optional[str] = None,
                      last_name: Optional[str] = None) -> User:
    now = now_epoch()
    user_id = uuid.uuid4().hex
    await db.execute("""
        INSERT INTO users (id, email, first_name, last_name, user_number, created_at, updated_at)
        VALUES (?, ?, ?, ?, 1, ?, ?)
    """, (user_id, email, first_name, last_name, now, now))
    await db.commit()
    logger.info(f"Created user {user_id} for {email}")
    return await get_user(db, user_id)


async def get_or_create_user(db, email: str, first_name: Optional[str] = None) -> User:
    user = await get_user_by_email(db, email)
    if user is not None:
        return user
    return await create_user(db, email, first_name=first_name)


async def count_users_with_initials(db, initials: str, exclude_id: Optional[str] = None) -> int:
    """Users whose first+last initials match, case-insensitive"""
    if len(initials) != 2:
        return 0
    return await execute_scalar(db, """
        SELECT COUNT(*) FROM users
        WHERE upper(substr(first_name, 1, 1)) = ?
          AND upper(substr(last_name, 1, 1)) = ?
          AND id != ?
    """, (initials[0].upper(), initials[1].upper(), exclude_id or ""))


async def update_profile(db, user_id: str, first_name: str, last_name: str) -> User:
    """
    Set first/last name. A user completing their profile for the first time
    gets user_number = (users already sharing the initials) + 1; once the
    profile is complete the number is kept.
    """
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    errors = []
    if not first_name:
        errors.append(FieldError("firstName", "First name is required"))
    if not last_name:
        errors.append(FieldError("lastName", "Last name is required"))
    if errors:
        raise SheetValidationError(errors)

    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    user_number = user.user_number
    if not user.first_name or not user.last_name:
        initials = f"{first_name[0]}{last_name[0]}".upper()
        user_number = await count_users_with_initials(db, initials, exclude_id=user_id) + 1

    await db.execute("""
        UPDATE users SET first_name = ?, last_name = ?, user_number = ?, updated_at = ?
        WHERE id = ?
    """, (first_name, last_name, user_number, now_epoch(), user_id))
    await db.commit()
    logger.info(f"Profile completed for user {user_id} (number {user_number})")
    return await get_user(db, user_id)


async def record_login(db, user: User, ip_address: Optional[str] = None,
                       user_agent: Optional[str] = None) -> UserLogin:
    login = UserLogin(
        id=uuid.uuid4().hex,
        user_id=user.id,
        email=user.email or "",
        first_name=user.first_name,
        login_time=now_epoch(),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    await db.execute("""
        INSERT INTO user_logins (id, user_id, email, first_name, login_time, ip_address, user_agent)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (login.id, login.user_id, login.email, login.first_name, login.login_time,
          login.ip_address, login.user_agent))
    await db.commit()
    return login


async def list_users(db) -> List[dict]:
    """Users with their sheet counts and last login, newest first"""
    return await execute_all(db, """
        SELECT u.*,
               (SELECT COUNT(*) FROM test_sheets s WHERE s.user_id = u.id) AS sheet_count,
               (SELECT MAX(l.login_time) FROM user_logins l WHERE l.user_id = u.id) AS last_login
        FROM users u
        ORDER BY u.created_at DESC
    """)


async def login_stats(db, since: int) -> dict:
    """Login counts since an epoch timestamp"""
    row = await execute_one(db, """
        SELECT COUNT(*) AS total_logins,
               COUNT(DISTINCT user_id) AS unique_users
        FROM user_logins WHERE login_time >= ?
    """, (since,))
    per_day = await execute_all(db, """
        SELECT date(login_time, 'unixepoch') AS day, COUNT(*) AS logins
        FROM user_logins WHERE login_time >= ?
        GROUP BY day ORDER BY day
    """, (since,))
    return {
        "totalLogins": row["total_logins"],
        "uniqueUsers": row["unique_users"],
        "perDay": per_day,
    }
