"""
NAE Test Sheets - Template Store
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Test template CRUD; at most one default template
"""

import logging
import uuid
from typing import List, Optional

from database import execute_one, execute_all, now_epoch, json_col, from_json
from errors import NotFoundError
from models.test_sheet import TestTemplate, TemplateCreate, TemplateUpdate

logger = logging.getLogger(__name__)


def _row_to_template(row: dict) -> TestTemplate:
    row = dict(row)
    row["test_names"] = from_json(row["test_names"]) or []
    row["is_default"] = bool(row["is_default"])
    return TestTemplate.model_validate(row)


async def list_templates(db) -> List[TestTemplate]:
    rows = await execute_all(db, "SELECT * FROM test_templates ORDER BY is_default DESC, name")
    return [_row_to_template(r) for r in rows]


async def get_template(db, template_id: str) -> Optional[TestTemplate]:
    row = await execute_one(db, "SELECT * FROM test_templates WHERE id = ?", (template_id,))
    return _row_to_template(row) if row else None


async def get_default_template(db) -> Optional[TestTemplate]:
    row = await execute_one(
        db, "SELECT * FROM test_templates WHERE is_default = 1 ORDER BY created_at LIMIT 1")
    return _row_to_template(row) if row else None


async def _clear_default(db):
    await db.execute("UPDATE test_templates SET is_default = 0 WHERE is_default = 1")


async def create_template(db, data: TemplateCreate) -> TestTemplate:
    now = now_epoch()
    template_id = uuid.uuid4().hex
    if data.is_default:
        await _clear_default(db)
    await db.execute("""
        INSERT INTO test_templates (id, name, test_names, is_default, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (template_id, data.name, json_col(data.test_names), int(data.is_default), now, now))
    await db.commit()
    logger.info(f"Created template '{data.name}' ({len(data.test_names)} tests)")
    return await get_template(db, template_id)


async def update_template(db, template_id: str, data: TemplateUpdate) -> TestTemplate:
    existing = await get_template(db, template_id)
    if existing is None:
        raise NotFoundError(f"Template {template_id} not found")

    name = data.name if data.name is not None else existing.name
    test_names = data.test_names if data.test_names is not None else existing.test_names
    await db.execute("""
        UPDATE test_templates SET name = ?, test_names = ?, updated_at = ? WHERE id = ?
    """, (name, json_col(test_names), now_epoch(), template_id))
    await db.commit()
    return await get_template(db, template_id)


async def set_default_template(db, template_id: str) -> TestTemplate:
    if await get_template(db, template_id) is None:
        raise NotFoundError(f"Template {template_id} not found")
    await _clear_default(db)
    await db.execute("UPDATE test_templates SET is_default = 1, updated_at = ? WHERE id = ?",
                     (now_epoch(), template_id))
    await db.commit()
    logger.info(f"Default template set to {template_id}")
    return await get_template(db, template_id)


async def delete_template(db, template_id: str) -> None:
    """Existing sheets keep their item rows; only future sheets are affected"""
    cursor = await db.execute("DELETE FROM test_templates WHERE id = ?", (template_id,))
    await db.commit()
    if cursor.rowcount == 0:
        raise NotFoundError(f"Template {template_id} not found")
    logger.info(f"Deleted template {template_id}")
