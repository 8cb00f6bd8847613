"""
NAE Test Sheets - PDF Generation Service
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Form data rendered locally through report_generator;
                      only raw HTML goes to the external renderer
v1.0.0 (2026-09-28): HTTP client for the headless-browser rendering service

Render failures surface as RenderServiceError carrying the underlying
message. Nothing here retries; the caller decides.
"""

import logging
from typing import Dict, List, Literal, Optional

import httpx
from pydantic import Field

from config import settings
from errors import RenderServiceError
from models.constants import TEST_ITEMS
from models.test_sheet import SheetModel, TestItem, TestSheetFormData
from services.report_generator import render_pdf

logger = logging.getLogger(__name__)


class PdfMargin(SheetModel):
    top: str = "10mm"
    right: str = "10mm"
    bottom: str = "10mm"
    left: str = "10mm"


class PdfOptions(SheetModel):
    """Options forwarded to the renderer"""
    format: Literal["A4", "Letter"] = "A4"
    landscape: bool = False
    margin: PdfMargin = Field(default_factory=PdfMargin)
    print_background: bool = True


class HtmlRenderClient:
    """Client for the external HTML -> PDF rendering service"""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url or settings.PDF_RENDER_URL
        self.timeout = timeout if timeout is not None else settings.PDF_RENDER_TIMEOUT
        self._transport = transport

    async def render_html(self, html: str, options: Optional[PdfOptions] = None) -> bytes:
        options = options or PdfOptions()
        payload = {"html": html, "options": options.model_dump(by_alias=True)}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Renderer returned {e.response.status_code}: {e.response.text}")
            raise RenderServiceError(
                f"Renderer returned {e.response.status_code}: {e.response.text}") from e
        except httpx.RequestError as e:
            logger.error(f"Renderer request failed: {e}")
            raise RenderServiceError(f"Renderer request failed: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "pdf" not in content_type:
            raise RenderServiceError(f"Renderer returned unexpected content type '{content_type}'")
        return response.content

    async def health(self) -> Dict[str, str]:
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.get(self.url.rsplit("/", 1)[0] + "/health")
            return {"renderer": "ok" if response.status_code == 200 else "degraded"}
        except httpx.RequestError as e:
            logger.warning(f"Renderer health check failed: {e}")
            return {"renderer": "unreachable"}


_client: Optional[HtmlRenderClient] = None


def get_render_client() -> HtmlRenderClient:
    global _client
    if _client is None:
        _client = HtmlRenderClient()
    return _client


def set_render_client(client: Optional[HtmlRenderClient]):
    global _client
    _client = client


def items_from_form(form: TestSheetFormData) -> List[TestItem]:
    """The fixed test items, in canonical order, with the form's results"""
    return [
        TestItem(
            id=item.key,
            test_sheet_id="",
            test_name=item.label,
            status=getattr(form, item.field),
            comment=getattr(form, item.comment_field),
            sort_order=order,
        )
        for order, item in enumerate(TEST_ITEMS)
    ]


def render_form_pdf(form: TestSheetFormData, admin_name: Optional[str] = None) -> bytes:
    """PDF of an unsaved form; the administrator field doubles as display name"""
    return render_pdf(form, items_from_form(form), admin_name or form.administrator)
