"""
NAE Test Sheets - Admin API
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Activity joined on user id instead of administrator name
v1.0.0 (2026-09-28): User activity, login stats, sheet stats, user list
"""

from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from collections import defaultdict
import logging

from api.deps import get_current_user
from database import get_db, execute_all, now_epoch
from models.user import User
from services import user_store
from services.email_validation import get_display_name_from_email
from services.validation import display_name

router = APIRouter()
logger = logging.getLogger(__name__)


def _today_start(now: int) -> int:
    today = datetime.fromtimestamp(now, tz=timezone.utc)
    return int(today.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())


@router.get("/user-activity")
async def user_activity(user: User = Depends(get_current_user)):
    """Login count, last login, sheet count and last sheet per user"""
    async with get_db() as db:
        rows = await execute_all(db, """
            SELECT u.id, u.email, u.first_name, u.last_name,
                   (SELECT COUNT(*) FROM user_logins l WHERE l.user_id = u.id) AS login_count,
                   (SELECT MAX(l.login_time) FROM user_logins l WHERE l.user_id = u.id) AS last_login,
                   (SELECT COUNT(*) FROM test_sheets s WHERE s.user_id = u.id) AS sheet_count,
                   (SELECT MAX(s.start_time) FROM test_sheets s WHERE s.user_id = u.id) AS last_sheet
            FROM users u
        """)

    activity = []
    for row in rows:
        name = " ".join(p for p in (row["first_name"], row["last_name"]) if p)
        activity.append({
            "email": row["email"],
            "displayName": name or get_display_name_from_email(row["email"] or ""),
            "lastLogin": row["last_login"],
            "loginCount": row["login_count"],
            "lastTestSheet": row["last_sheet"],
            "testSheetCount": row["sheet_count"],
        })
    activity.sort(key=lambda a: a["lastLogin"] or 0, reverse=True)
    return activity


@router.get("/login-stats")
async def login_stats(user: User = Depends(get_current_user)):
    """Today's (UTC) logins and unique users"""
    async with get_db() as db:
        stats = await user_store.login_stats(db, _today_start(now_epoch()))
    return {"todayCount": stats["totalLogins"], "todayUniqueUsers": stats["uniqueUsers"]}


@router.get("/sheets-stats")
async def sheets_stats(user: User = Depends(get_current_user)):
    """Sheets started in the last 30 days, per user and per day"""
    since = now_epoch() - 30 * 24 * 3600
    async with get_db() as db:
        daily = await execute_all(db, """
            SELECT u.email AS email,
                   strftime('%Y-%m-%d', s.start_time, 'unixepoch') AS date,
                   COUNT(s.id) AS count
            FROM test_sheets s JOIN users u ON u.id = s.user_id
            WHERE s.start_time >= ?
            GROUP BY u.email, date
            ORDER BY date
        """, (since,))

    totals = defaultdict(int)
    by_day = defaultdict(list)
    for row in daily:
        email = row["email"] or "unknown"
        totals[email] += row["count"]
        by_day[email].append({"date": row["date"], "count": row["count"]})
    return {
        "last30Days": [{"email": e, "count": c} for e, c in totals.items()],
        "byDay": dict(by_day),
    }


@router.get("/users")
async def list_users(user: User = Depends(get_current_user)):
    async with get_db() as db:
        rows = await user_store.list_users(db)
    users = []
    for row in rows:
        record = User.model_validate(row)
        entry = record.model_dump(by_alias=True)
        entry["displayName"] = display_name(record)
        entry["sheetCount"] = row["sheet_count"]
        entry["lastLogin"] = row["last_login"]
        users.append(entry)
    return users
