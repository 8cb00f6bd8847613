"""
NAE Test Sheets - Database Connection Manager
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Initial database connection manager with async helpers

Provides centralized async SQLite connection management for all endpoints.
Uses aiosqlite with WAL journal mode and foreign key enforcement.
"""

import os
import time
import json
import aiosqlite
from contextlib import asynccontextmanager

from config import settings


def get_db_path() -> str:
    """Resolve database path, create data directory if needed"""
    db_path = settings.SQLITE_DB_PATH
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return db_path


@asynccontextmanager
async def get_db():
    """Async context manager yielding an aiosqlite connection with WAL + FK"""
    db = await aiosqlite.connect(get_db_path())
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    try:
        yield db
    finally:
        await db.close()


async def execute_one(db, sql: str, params=()) -> dict | None:
    """Execute query and return first row as dict, or None"""
    cursor = await db.execute(sql, params)
    row = await cursor.fetchone()
    return dict(row) if row else None


async def execute_all(db, sql: str, params=()) -> list[dict]:
    """Execute query and return all rows as list of dicts"""
    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]


async def execute_scalar(db, sql: str, params=()):
    """Execute query and return the first column of the first row"""
    cursor = await db.execute(sql, params)
    row = await cursor.fetchone()
    return row[0] if row else None


def now_epoch() -> int:
    """Current wall-clock time as integer epoch seconds"""
    return int(time.time())


def json_col(data) -> str:
    """Serialize Python object to JSON TEXT for SQLite storage"""
    if data is None:
        return '[]'
    return json.dumps(data, default=str)


def from_json(text: str):
    """Deserialize JSON TEXT column to Python object"""
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
