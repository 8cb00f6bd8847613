"""
NAE Test Sheets - Session Store
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): SQLite-backed sessions with wall-clock expiry

A row whose expire <= now is never returned, whether or not it has been
pruned yet. Expired rows found on lookup are deleted.
"""

import json
import logging
from typing import Optional

from config import settings
from database import execute_one, now_epoch
from models.user import SessionRecord
from services.encryption import generate_token

logger = logging.getLogger(__name__)


async def create_session(db, user_id: str, ttl_seconds: Optional[int] = None) -> SessionRecord:
    ttl = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_HOURS * 3600
    record = SessionRecord(
        sid=generate_token(),
        sess=json.dumps({"userId": user_id}),
        expire=now_epoch() + ttl,
    )
    await db.execute("INSERT INTO sessions (sid, sess, expire) VALUES (?, ?, ?)",
                     (record.sid, record.sess, record.expire))
    await db.commit()
    return record


async def get_session(db, sid: str, now: Optional[int] = None) -> Optional[SessionRecord]:
    if not sid:
        return None
    row = await execute_one(db, "SELECT * FROM sessions WHERE sid = ?", (sid,))
    if row is None:
        return None
    record = SessionRecord.model_validate(row)
    if record.is_expired(now if now is not None else now_epoch()):
        await db.execute("DELETE FROM sessions WHERE sid = ?", (sid,))
        await db.commit()
        return None
    return record


async def get_session_user_id(db, sid: str) -> Optional[str]:
    record = await get_session(db, sid)
    if record is None:
        return None
    try:
        return json.loads(record.sess).get("userId")
    except (json.JSONDecodeError, AttributeError):
        logger.warning("Discarding session with unreadable payload")
        return None


async def destroy_session(db, sid: str) -> None:
    await db.execute("DELETE FROM sessions WHERE sid = ?", (sid,))
    await db.commit()


async def prune_expired_sessions(db, now: Optional[int] = None) -> int:
    cursor = await db.execute("DELETE FROM sessions WHERE expire <= ?",
                              (now if now is not None else now_epoch(),))
    await db.commit()
    if cursor.rowcount:
        logger.info(f"Pruned {cursor.rowcount} expired sessions")
    return cursor.rowcount
