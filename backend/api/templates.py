"""
NAE Test Sheets - Template API Endpoints
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Template CRUD for the admin panel
"""

from fastapi import APIRouter, Depends

from api.deps import get_current_user
from database import get_db
from errors import NotFoundError
from models.test_sheet import TemplateCreate, TemplateUpdate
from models.user import User
from services import template_store

router = APIRouter()


@router.get("")
async def list_templates(user: User = Depends(get_current_user)):
    async with get_db() as db:
        templates = await template_store.list_templates(db)
    return [t.model_dump(by_alias=True) for t in templates]


@router.get("/default")
async def get_default_template(user: User = Depends(get_current_user)):
    async with get_db() as db:
        template = await template_store.get_default_template(db)
    if template is None:
        raise NotFoundError("No default template configured")
    return template.model_dump(by_alias=True)


@router.post("", status_code=201)
async def create_template(data: TemplateCreate, user: User = Depends(get_current_user)):
    async with get_db() as db:
        template = await template_store.create_template(db, data)
    return template.model_dump(by_alias=True)


@router.patch("/{template_id}")
async def update_template(template_id: str, data: TemplateUpdate,
                          user: User = Depends(get_current_user)):
    async with get_db() as db:
        template = await template_store.update_template(db, template_id, data)
    return template.model_dump(by_alias=True)


@router.post("/{template_id}/default")
async def set_default_template(template_id: str, user: User = Depends(get_current_user)):
    async with get_db() as db:
        template = await template_store.set_default_template(db, template_id)
    return template.model_dump(by_alias=True)


@router.delete("/{template_id}")
async def delete_template(template_id: str, user: User = Depends(get_current_user)):
    async with get_db() as db:
        await template_store.delete_template(db, template_id)
    return {"message": "Template deleted", "id": template_id}
