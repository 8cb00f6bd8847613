"""
NAE Test Sheets - PDF API Endpoints
Version: 1.1.1

Changelog:
v1.1.1 (2026-10-19): Content-Disposition safe for non-ASCII tech references
v1.1.0 (2026-10-12): Test sheet PDFs rendered locally; raw HTML still goes
                      to the external renderer
v1.0.0 (2026-09-28): generate-test-sheet, generate-from-html, health
"""

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import Response
from typing import Any, Dict
import logging

from pydantic import ValidationError

from api.deps import get_current_user
from models.user import User
from services.pdf_service import PdfOptions, get_render_client, render_form_pdf
from services.report_generator import content_disposition, report_filename, save_report
from services.validation import parse_form_data

router = APIRouter()
logger = logging.getLogger(__name__)


def _pdf_response(pdf: bytes, filename: str) -> Response:
    return Response(content=pdf, media_type="application/pdf",
                    headers={"Content-Disposition": content_disposition(filename)})


@router.post("/generate-test-sheet")
async def generate_test_sheet(payload: Dict[str, Any] = Body(...),
                              user: User = Depends(get_current_user)):
    """
    Render form data to PDF.

    Body: {formData, filename?, saveToDisk?}. With saveToDisk the file is also
    written to REPORTS_DIR.
    """
    raw = payload.get("formData")
    if not raw:
        raise HTTPException(status_code=400, detail="Form data is required")

    form = parse_form_data(raw)
    filename = payload.get("filename") or (
        report_filename(form.tech_reference) if form.tech_reference else "test-sheet.pdf")
    pdf = render_form_pdf(form)

    if payload.get("saveToDisk"):
        save_report(pdf, filename)
    return _pdf_response(pdf, filename)


@router.post("/generate-from-html")
async def generate_from_html(payload: Dict[str, Any] = Body(...),
                             user: User = Depends(get_current_user)):
    """Body: {html, options?}; rendered by the external service"""
    html = payload.get("html")
    if not html:
        raise HTTPException(status_code=400, detail="HTML content is required")
    try:
        options = PdfOptions.model_validate(payload.get("options") or {})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid options: {e.errors()}")
    pdf = await get_render_client().render_html(html, options)
    return _pdf_response(pdf, "document.pdf")


@router.get("/health")
async def pdf_health():
    status = {"status": "ok", "service": "PDF Generation", "engine": "reportlab"}
    status.update(await get_render_client().health())
    return status
