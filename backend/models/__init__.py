"""
NAE Test Sheets - Database Models
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): test_items gains sort_order and becomes the only store
                      of per-item results; per-item columns dropped from
                      test_sheets; EPS-link steps kept as sheet columns
v1.0.0 (2026-09-28): Initial schema - users, sessions, user_logins,
                      test_sheets, test_items, test_templates; default
                      template seed
"""

from .constants import TEST_ITEMS, DEFAULT_TEMPLATE_NAME
from .test_sheet import (
    TestSheetFormData, TestSheetSubmit, TestSheet, TestItem, TestTemplate,
    TemplateCreate, TemplateUpdate, SHEET_COLUMNS,
)
from .user import User, UserView, SessionRecord, UserLogin, LoginRequest, ProfileUpdate

import json
import uuid
import aiosqlite
import logging

logger = logging.getLogger(__name__)


async def _add_column_if_missing(db, table, column, col_type, default=None):
    """Idempotent ALTER TABLE ADD COLUMN"""
    cursor = await db.execute(f"PRAGMA table_info({table})")
    existing = {row[1] for row in await cursor.fetchall()}
    if column not in existing:
        default_clause = f" DEFAULT {default}" if default is not None else ""
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}{default_clause}")


async def init_db():
    """Initialize SQLite database with the test sheet schema"""
    from database import get_db_path, now_epoch
    db_path = get_db_path()
    logger.info(f"Initializing database: {db_path}")

    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA foreign_keys=ON")

        # ================================================================
        # USERS
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE,
                first_name TEXT,
                last_name TEXT,
                profile_image_url TEXT,
                user_number INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        # ================================================================
        # SESSIONS (sid -> JSON payload, expire = epoch seconds)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                sid TEXT PRIMARY KEY,
                sess TEXT NOT NULL,
                expire INTEGER NOT NULL
            )
        """)

        # ================================================================
        # USER LOGINS
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_logins (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                email TEXT NOT NULL,
                first_name TEXT,
                login_time INTEGER NOT NULL,
                ip_address TEXT,
                user_agent TEXT,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # ================================================================
        # TEST SHEETS
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS test_sheets (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                tech_reference TEXT NOT NULL UNIQUE,
                admin_reference TEXT NOT NULL,
                form_type TEXT NOT NULL DEFAULT 'Test Sheet',
                instruction TEXT,
                start_time INTEGER NOT NULL,
                end_time INTEGER,
                customer TEXT NOT NULL,
                plant_name TEXT NOT NULL,
                notes TEXT,
                vehicle_make TEXT,
                vehicle_model TEXT,
                vehicle_voltage TEXT,
                serial_esn TEXT,
                sim_id TEXT,
                izwi_serial TEXT,
                eps_serial TEXT,
                old_serial_esn TEXT,
                old_sim_id TEXT,
                old_izwi_serial TEXT,
                old_eps_serial TEXT,
                units_replaced TEXT,
                administrator TEXT NOT NULL,
                technician_name TEXT,
                technician_job_card_no TEXT,
                odometer_engine_hours TEXT,
                administrator_signature TEXT,
                pdu_installed TEXT NOT NULL DEFAULT 'N/A',
                pdu_voltage_parked TEXT,
                pdu_voltage_ignition TEXT,
                pdu_voltage_idle TEXT,
                eps_linked TEXT NOT NULL DEFAULT 'N/A',
                eps_power_on_status TEXT NOT NULL DEFAULT 'N/A',
                eps_power_on_comment TEXT,
                eps_trip1_status TEXT NOT NULL DEFAULT 'N/A',
                eps_trip1_comment TEXT,
                eps_lock_cancel1_status TEXT NOT NULL DEFAULT 'N/A',
                eps_lock_cancel1_comment TEXT,
                eps_trip2_status TEXT NOT NULL DEFAULT 'N/A',
                eps_trip2_comment TEXT,
                eps_lock_cancel2_status TEXT NOT NULL DEFAULT 'N/A',
                eps_lock_cancel2_comment TEXT,
                is_draft BOOLEAN NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE RESTRICT
            )
        """)

        # ================================================================
        # TEST ITEMS (authoritative per-item results, template order)
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS test_items (
                id TEXT PRIMARY KEY,
                test_sheet_id TEXT NOT NULL,
                test_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'N/A'
                    CHECK(status IN ('Working', 'Faulty', 'N/A', 'Not Tested')),
                comment TEXT,
                created_at INTEGER NOT NULL,
                FOREIGN KEY (test_sheet_id) REFERENCES test_sheets(id) ON DELETE CASCADE
            )
        """)
        await _add_column_if_missing(db, "test_items", "sort_order", "INTEGER", default=0)

        # ================================================================
        # TEST TEMPLATES
        # ================================================================
        await db.execute("""
            CREATE TABLE IF NOT EXISTS test_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                test_names TEXT NOT NULL,
                is_default BOOLEAN NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        # ================================================================
        # INDEXES
        # ================================================================
        await db.execute("CREATE INDEX IF NOT EXISTS IDX_session_expire ON sessions(expire)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_login_user ON user_logins(user_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_login_time ON user_logins(login_time)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_sheet_user ON test_sheets(user_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_sheet_start ON test_sheets(start_time)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_sheet_admin_ref ON test_sheets(admin_reference)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_item_sheet ON test_items(test_sheet_id, sort_order)")

        # ================================================================
        # SEED DEFAULT TEMPLATE
        # ================================================================
        cursor = await db.execute("SELECT COUNT(*) FROM test_templates")
        if (await cursor.fetchone())[0] == 0:
            now = now_epoch()
            await db.execute(
                """INSERT INTO test_templates (id, name, test_names, is_default, created_at, updated_at)
                   VALUES (?, ?, ?, 1, ?, ?)""",
                (uuid.uuid4().hex, DEFAULT_TEMPLATE_NAME,
                 json.dumps([item.label for item in TEST_ITEMS]), now, now),
            )
            logger.info(f"Seeded default template with {len(TEST_ITEMS)} test items")

        await db.commit()

    logger.info("Database initialized")


__all__ = [
    "TestSheetFormData", "TestSheetSubmit", "TestSheet", "TestItem", "TestTemplate",
    "TemplateCreate", "TemplateUpdate", "SHEET_COLUMNS",
    "User", "UserView", "SessionRecord", "UserLogin", "LoginRequest", "ProfileUpdate",
    "init_db",
]
