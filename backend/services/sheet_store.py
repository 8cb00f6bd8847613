"""
NAE Test Sheets - Test Sheet Store
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): Search text matched literally (% and _ escaped);
                      non-string techReference in a PATCH is rejected cleanly
v1.1.0 (2026-10-12): Item rows are the single store of per-item results;
                      update writes through to them; search + job card lookup
v1.0.0 (2026-09-28): Create/read/update/delete of test sheets and items,
                      per-user stats

Every function takes an open aiosqlite connection (database.get_db). A sheet
and its item rows are written in one transaction; a failed create leaves no
rows behind.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

import aiosqlite
from pydantic import Field

from database import execute_one, execute_all, execute_scalar, now_epoch
from errors import (
    DuplicateReferenceError, FieldError, NotFoundError, SheetValidationError,
    StorageError,
)
from models.constants import (
    TEST_ITEMS, TEST_ITEM_BY_KEY, TEST_ITEM_BY_LABEL, DEFAULT_TEST_STATUS,
)
from models.test_sheet import (
    SHEET_COLUMNS, SheetModel, TestItem, TestSheet, TestSheetFormData, alias_for,
    field_name_for, to_epoch,
)
from services.encryption import get_encryption
from services.template_store import get_default_template, get_template
from services.validation import validate_form_data

logger = logging.getLogger(__name__)

# Columns copied straight from the validated form
_DETAIL_COLUMNS = tuple(
    c for c in SHEET_COLUMNS
    if c not in ("id", "user_id", "tech_reference", "start_time", "end_time",
                 "administrator_signature", "created_at", "updated_at")
)

_SORT_COLUMNS = {
    "startTime": "start_time",
    "endTime": "end_time",
    "createdAt": "created_at",
    "customer": "customer",
    "plantName": "plant_name",
}

_SEARCH_TEXT_COLUMNS = (
    "customer", "plant_name", "vehicle_make", "vehicle_model", "administrator",
    "technician_name", "tech_reference", "admin_reference", "serial_esn",
)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SheetSearch(SheetModel):
    """Search filters; every field is optional"""
    q: Optional[str] = None
    customer: Optional[str] = None
    administrator: Optional[str] = None
    technician_name: Optional[str] = None
    form_type: Optional[str] = None
    is_draft: Optional[bool] = None
    start_from: Optional[int] = Field(None, description="Epoch seconds, inclusive")
    start_to: Optional[int] = Field(None, description="Epoch seconds, inclusive")
    sort_by: Literal["startTime", "endTime", "createdAt", "customer", "plantName"] = "startTime"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


def _item_def(test_name: str):
    return TEST_ITEM_BY_LABEL.get(test_name) or TEST_ITEM_BY_KEY.get(test_name)


def _row_to_sheet(row: Mapping[str, Any]) -> TestSheet:
    data = dict(row)
    data["is_draft"] = bool(data.get("is_draft"))
    data["administrator_signature"] = get_encryption().decrypt_text(
        data.get("administrator_signature"))
    return TestSheet.model_validate(data)


async def _template_names(db, template_id: Optional[str]) -> List[str]:
    if template_id:
        template = await get_template(db, template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        return template.test_names
    template = await get_default_template(db)
    if template is None:
        return [item.label for item in TEST_ITEMS]
    return template.test_names


def _item_values(form: TestSheetFormData, test_name: str) -> Tuple[str, str]:
    item = _item_def(test_name)
    if item is None:
        return DEFAULT_TEST_STATUS, ""
    return getattr(form, item.field), getattr(form, item.comment_field)


async def create_sheet(db, user_id: str, form: TestSheetFormData,
                       signature: Optional[str] = None,
                       template_id: Optional[str] = None) -> TestSheet:
    """
    Insert the sheet row plus one item row per template test name.

    Raises:
        DuplicateReferenceError: tech_reference already exists; nothing written.
        StorageError: any other integrity failure (e.g. unknown user).
    """
    if not form.tech_reference.strip():
        raise SheetValidationError([FieldError("techReference", "Tech Reference is required")])

    names = await _template_names(db, template_id)
    now = now_epoch()
    sheet_id = uuid.uuid4().hex

    row = form.model_dump(include=set(_DETAIL_COLUMNS))
    row.update(
        id=sheet_id,
        user_id=user_id,
        tech_reference=form.tech_reference.strip(),
        start_time=to_epoch(form.start_time),
        end_time=to_epoch(form.end_time),
        administrator_signature=get_encryption().encrypt_text(signature or None),
        is_draft=int(form.is_draft),
        created_at=now,
        updated_at=now,
    )
    columns = ", ".join(SHEET_COLUMNS)
    placeholders = ", ".join("?" for _ in SHEET_COLUMNS)

    try:
        await db.execute(
            f"INSERT INTO test_sheets ({columns}) VALUES ({placeholders})",
            tuple(row[c] for c in SHEET_COLUMNS),
        )
        for order, name in enumerate(names):
            status, comment = _item_values(form, name)
            await db.execute("""
                INSERT INTO test_items (id, test_sheet_id, test_name, status, comment, sort_order, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (uuid.uuid4().hex, sheet_id, name, status, comment, order, now))
        await db.commit()
    except aiosqlite.IntegrityError as e:
        await db.rollback()
        if "tech_reference" in str(e):
            logger.info(f"Rejected duplicate tech reference {row['tech_reference']}")
            raise DuplicateReferenceError(row["tech_reference"]) from e
        raise StorageError(f"Failed to save test sheet: {e}") from e

    logger.info(f"Created test sheet {sheet_id} ({row['tech_reference']}) with {len(names)} items")
    return await get_sheet(db, sheet_id)


async def get_sheet(db, sheet_id: str) -> Optional[TestSheet]:
    row = await execute_one(db, "SELECT * FROM test_sheets WHERE id = ?", (sheet_id,))
    return _row_to_sheet(row) if row else None


async def get_items(db, sheet_id: str) -> List[TestItem]:
    rows = await execute_all(db, """
        SELECT * FROM test_items WHERE test_sheet_id = ?
        ORDER BY sort_order, created_at
    """, (sheet_id,))
    return [TestItem.model_validate(r) for r in rows]


async def get_sheet_with_items(db, sheet_id: str) -> Tuple[TestSheet, List[TestItem]]:
    sheet = await get_sheet(db, sheet_id)
    if sheet is None:
        raise NotFoundError(f"Test sheet {sheet_id} not found")
    return sheet, await get_items(db, sheet_id)


async def list_user_sheets(db, user_id: str) -> List[TestSheet]:
    rows = await execute_all(db, """
        SELECT * FROM test_sheets WHERE user_id = ? ORDER BY start_time DESC
    """, (user_id,))
    return [_row_to_sheet(r) for r in rows]


async def recent_sheets(db, user_id: str, limit: int = 5) -> List[TestSheet]:
    rows = await execute_all(db, """
        SELECT * FROM test_sheets WHERE user_id = ? ORDER BY created_at DESC LIMIT ?
    """, (user_id, limit))
    return [_row_to_sheet(r) for r in rows]


async def all_sheets(db) -> List[TestSheet]:
    rows = await execute_all(db, "SELECT * FROM test_sheets ORDER BY start_time DESC")
    return [_row_to_sheet(r) for r in rows]


async def sheets_by_admin_reference(db, admin_reference: str,
                                    user_id: Optional[str] = None) -> List[TestSheet]:
    """Job card lookup; optionally restricted to one owner"""
    sql = "SELECT * FROM test_sheets WHERE admin_reference = ?"
    params: list = [admin_reference]
    if user_id is not None:
        sql += " AND user_id = ?"
        params.append(user_id)
    rows = await execute_all(db, sql + " ORDER BY start_time DESC", params)
    return [_row_to_sheet(r) for r in rows]


async def update_sheet(db, sheet_id: str, changes: Mapping[str, Any]) -> TestSheet:
    """
    Apply a partial update (camelCase or snake_case keys).

    The merged record is re-validated as a whole. tech_reference is immutable;
    per-item fields are written to the matching item rows.
    """
    sheet, items = await get_sheet_with_items(db, sheet_id)

    for key in ("techReference", "tech_reference"):
        if key in changes and str(changes[key] or "").strip() != sheet.tech_reference:
            raise SheetValidationError(
                [FieldError("techReference", "Tech Reference cannot be changed")])

    merged = sheet.to_form_data(items).model_dump(by_alias=True)
    for key, value in changes.items():
        if key in ("signature", "administratorSignature", "administrator_signature"):
            continue
        name = field_name_for(key)
        merged[alias_for(name) if name else key] = value
    form = validate_form_data(merged)

    assignments = {c: getattr(form, c) for c in _DETAIL_COLUMNS}
    assignments["is_draft"] = int(form.is_draft)
    assignments["start_time"] = to_epoch(form.start_time)
    assignments["end_time"] = to_epoch(form.end_time)
    for key in ("signature", "administratorSignature", "administrator_signature"):
        if key in changes:
            assignments["administrator_signature"] = get_encryption().encrypt_text(
                changes[key] or None)
    assignments["updated_at"] = now_epoch()

    set_clause = ", ".join(f"{c} = ?" for c in assignments)
    try:
        await db.execute(f"UPDATE test_sheets SET {set_clause} WHERE id = ?",
                         (*assignments.values(), sheet_id))
        for row in items:
            if _item_def(row.test_name) is None:
                continue
            status, comment = _item_values(form, row.test_name)
            if status != row.status or comment != (row.comment or ""):
                await db.execute("UPDATE test_items SET status = ?, comment = ? WHERE id = ?",
                                 (status, comment, row.id))
        await db.commit()
    except aiosqlite.Error as e:
        await db.rollback()
        raise StorageError(f"Failed to update test sheet: {e}") from e

    logger.info(f"Updated test sheet {sheet_id}")
    return await get_sheet(db, sheet_id)


async def delete_sheet(db, sheet_id: str) -> None:
    """Item rows go with the sheet (ON DELETE CASCADE)"""
    cursor = await db.execute("DELETE FROM test_sheets WHERE id = ?", (sheet_id,))
    await db.commit()
    if cursor.rowcount == 0:
        raise NotFoundError(f"Test sheet {sheet_id} not found")
    logger.info(f"Deleted test sheet {sheet_id}")


async def sheet_stats(db, user_id: Optional[str] = None, now: Optional[int] = None) -> Dict[str, int]:
    """Total, started this calendar month (UTC), created in the last 7 days"""
    now = now if now is not None else now_epoch()
    current = datetime.fromtimestamp(now, tz=timezone.utc)
    month_start = int(current.replace(day=1, hour=0, minute=0, second=0, microsecond=0).timestamp())
    week_ago = now - 7 * 24 * 3600

    where, params = ("WHERE user_id = ?", [user_id]) if user_id else ("", [])
    row = await execute_one(db, f"""
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN start_time >= ? THEN 1 ELSE 0 END), 0) AS this_month,
               COALESCE(SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END), 0) AS recent
        FROM test_sheets {where}
    """, (month_start, week_ago, *params))
    return {"total": row["total"], "thisMonth": row["this_month"], "recent": row["recent"]}


async def search_sheets(db, search: SheetSearch, user_id: Optional[str] = None) -> Dict[str, Any]:
    clauses: List[str] = []
    params: List[Any] = []

    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(user_id)
    if search.q:
        like = f"%{_escape_like(search.q.strip())}%"
        clauses.append("(" + " OR ".join(f"{c} LIKE ? ESCAPE '\\'" for c in _SEARCH_TEXT_COLUMNS) + ")")
        params.extend([like] * len(_SEARCH_TEXT_COLUMNS))
    for column in ("customer", "administrator", "technician_name", "form_type"):
        value = getattr(search, column)
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    if search.is_draft is not None:
        clauses.append("is_draft = ?")
        params.append(int(search.is_draft))
    if search.start_from is not None:
        clauses.append("start_time >= ?")
        params.append(search.start_from)
    if search.start_to is not None:
        clauses.append("start_time <= ?")
        params.append(search.start_to)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    total = await execute_scalar(db, f"SELECT COUNT(*) FROM test_sheets {where}", params)

    order = f"{_SORT_COLUMNS[search.sort_by]} {search.sort_order.upper()}"
    offset = (search.page - 1) * search.page_size
    rows = await execute_all(
        db,
        f"SELECT * FROM test_sheets {where} ORDER BY {order}, id LIMIT ? OFFSET ?",
        (*params, search.page_size, offset),
    )
    return {
        "items": [_row_to_sheet(r) for r in rows],
        "total": total,
        "page": search.page,
        "pageSize": search.page_size,
        "totalPages": math.ceil(total / search.page_size) if total else 0,
    }
