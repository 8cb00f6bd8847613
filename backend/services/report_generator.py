"""
NAE Test Sheets - PDF Report Generator Service
Version: 2.0.1

Changelog:
v2.0.1 (2026-10-19): No trailing blank page; RFC 5987 Content-Disposition
                      helper for non-ASCII tech references
v2.0.0 (2026-10-12): Layout split into a pure planner (plan_report) and a
                      reportlab canvas renderer; explicit page-break rules;
                      invariant output for identical input
v1.0.0 (2026-09-28): Initial test sheet PDF export

Coordinates are millimetres from the top-left of an A4 page. A section that
starts below PAGE_BREAK_Y moves to a new page; any block that would run past
CONTENT_BOTTOM_Y moves to a new page. Test table rows paginate one by one and
the header row is repeated on each continuation page.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
from urllib.parse import quote

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from config import settings
from models.constants import NOT_APPLICABLE, EPS_LINK_TESTS
from services.validation import old_identifiers, eps_link_applicable, pdu_applicable

logger = logging.getLogger(__name__)

PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
TOP_Y = 20
PAGE_BREAK_Y = 250
CONTENT_BOTTOM_Y = 280
FOOTER_Y = 285
LEFT_X = 20
RIGHT_X = 110
CONTENT_WIDTH = 170

ROW_HEIGHT = 7
LINE_HEIGHT = 5
SECTION_GAP = 10

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"

TITLE = "NAE IT Technology FORM"
FOOTER_TEXT = "Powered by NAE IT Technology"

# Tests table columns: (heading, x offset, width)
TEST_COLUMNS = (("Test", 0, 60), ("Status", 60, 30), ("Comment", 90, 80))


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    font: str = FONT
    size: float = 9
    align: str = "left"


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: bool = False


@dataclass
class ReportPlan:
    """Pages of drawing ops plus where each section landed"""
    pages: List[list] = field(default_factory=lambda: [[]])
    section_pages: Dict[str, int] = field(default_factory=dict)
    section_start_y: Dict[str, float] = field(default_factory=dict)
    cursor_before: Dict[str, float] = field(default_factory=dict)
    test_rows: int = 0

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def texts(self, page: Optional[int] = None) -> List[str]:
        pages = self.pages if page is None else [self.pages[page]]
        return [op.text for ops in pages for op in ops if isinstance(op, TextOp)]


class _Layout:
    def __init__(self):
        self.plan = ReportPlan()
        self.y = TOP_Y

    @property
    def ops(self) -> list:
        return self.plan.pages[-1]

    def new_page(self):
        self.plan.pages.append([])
        self.y = TOP_Y

    def ensure(self, height: float):
        if self.y + height > CONTENT_BOTTOM_Y:
            self.new_page()

    def section(self, name: str, height: float, threshold: bool = True):
        """Open a section; break first if past the threshold or short of room"""
        self.plan.cursor_before[name] = self.y
        if threshold and self.y > PAGE_BREAK_Y:
            self.new_page()
        else:
            self.ensure(height)
        self.plan.section_pages[name] = len(self.plan.pages) - 1
        self.plan.section_start_y[name] = self.y

    def text(self, x, y, text, font=FONT, size=9, align="left"):
        self.ops.append(TextOp(x, y, str(text), font, size, align))

    def heading(self, text: str):
        self.text(LEFT_X, self.y, text, FONT_BOLD, 10)
        self.y += 6

    def grid_row(self, cells: Sequence[str], columns, header=False, wrap_width=None):
        """One bordered table row; the last cell wraps if wrap_width is given"""
        lines = [[c] for c in cells]
        if wrap_width:
            lines[-1] = simpleSplit(cells[-1], FONT, 8, wrap_width * mm) or [""]
        height = max(ROW_HEIGHT, len(lines[-1]) * 4 + 3)
        self.ensure(height)
        for (_, offset, width), cell_lines in zip(columns, lines):
            self.ops.append(RectOp(LEFT_X + offset, self.y, width, height, fill=header))
            for i, line in enumerate(cell_lines):
                self.text(LEFT_X + offset + 2, self.y + 5 + i * 4, line,
                          FONT_BOLD if header else FONT, 8)
        self.y += height
        return height


def _value(value) -> str:
    if value is None:
        return NOT_APPLICABLE
    text = str(value).strip()
    return text if text else NOT_APPLICABLE


def format_time(value: Union[int, datetime, None], missing: str = NOT_APPLICABLE) -> str:
    """dd-mm-yyyy HH:MM; epoch seconds are rendered in UTC"""
    if value is None:
        return missing
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime("%d-%m-%Y %H:%M")
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%d-%m-%Y %H:%M")


def _header(layout: _Layout, sheet):
    layout.plan.section_pages["header"] = 0
    layout.plan.section_start_y["header"] = 15
    layout.text(PAGE_WIDTH_MM / 2, 15, TITLE, FONT_BOLD, 16, "center")
    for x, label, value in (
        (LEFT_X, "Technology Reference No", sheet.tech_reference),
        (80, "Admin Reference", sheet.admin_reference),
        (140, "Form Type", sheet.form_type),
    ):
        layout.text(x, 30, label, FONT, 10)
        layout.text(x, 36, _value(value), FONT_BOLD, 10)
    layout.y = 50


def _times_customer(layout: _Layout, sheet):
    layout.section("times", 3 * 6, threshold=False)
    rows = (
        ("Start Time", format_time(sheet.start_time), "Customer", _value(sheet.customer)),
        ("End Time", format_time(sheet.end_time, "In Progress"), "Plant Name", _value(sheet.plant_name)),
        ("Instruction", _value(sheet.instruction), "Odometer/Hours", _value(sheet.odometer_engine_hours)),
    )
    for left_label, left_value, right_label, right_value in rows:
        layout.text(LEFT_X, layout.y, left_label)
        layout.text(LEFT_X + 30, layout.y, left_value)
        layout.text(RIGHT_X, layout.y, right_label)
        layout.text(RIGHT_X + 30, layout.y, right_value)
        layout.y += 6
    layout.y += 4


def _vehicle(layout: _Layout, sheet):
    layout.section("vehicle", 6 + 2 * ROW_HEIGHT)
    layout.heading("Plant Details")
    columns = (("", 0, 35), ("Make", 35, 55), ("Model", 90, 50), ("Voltage", 140, 30))
    layout.grid_row(["", "Make", "Model", "Voltage"], columns, header=True)
    layout.grid_row(["Vehicle", _value(sheet.vehicle_make), _value(sheet.vehicle_model),
                     _value(sheet.vehicle_voltage)], columns)
    layout.y += SECTION_GAP


def _serials(layout: _Layout, sheet):
    rows = [
        ("Serial (ESN)", sheet.serial_esn),
        ("SIM-ID", sheet.sim_id),
        ("IZWI Serial", sheet.izwi_serial),
        ("EPS Serial", sheet.eps_serial),
        ("Units Replaced", sheet.units_replaced),
    ]
    rows.extend(old_identifiers(sheet))
    layout.section("serials", 6 + len(rows) * ROW_HEIGHT)
    layout.heading("Serial Numbers")
    columns = (("", 0, 60), ("", 60, 110))
    for label, value in rows:
        layout.grid_row([label, _value(value)], columns)
    layout.y += SECTION_GAP


def _tests(layout: _Layout, items):
    layout.section("tests", 6 + 2 * ROW_HEIGHT)
    layout.heading("Tests")
    headings = [c[0] for c in TEST_COLUMNS]
    layout.grid_row(headings, TEST_COLUMNS, header=True)
    for item in items:
        page = layout.plan.page_count
        cells = [item.test_name, item.status or NOT_APPLICABLE, item.comment or ""]
        wrapped = simpleSplit(cells[-1], FONT, 8, TEST_COLUMNS[-1][2] * mm) or [""]
        layout.ensure(max(ROW_HEIGHT, len(wrapped) * 4 + 3))
        if layout.plan.page_count != page:
            layout.grid_row(headings, TEST_COLUMNS, header=True)
        layout.grid_row(cells, TEST_COLUMNS, wrap_width=TEST_COLUMNS[-1][2])
        layout.plan.test_rows += 1
    layout.y += SECTION_GAP


def _pdu_eps(layout: _Layout, sheet):
    show_pdu = pdu_applicable(sheet)
    show_eps = eps_link_applicable(sheet)
    height = 6 + (6 if show_pdu else 0) + (len(EPS_LINK_TESTS) * 6 if show_eps else 0)
    layout.section("pdu_eps", height)
    layout.text(LEFT_X, layout.y, f"PDU Installed: {_value(sheet.pdu_installed)}")
    layout.text(RIGHT_X, layout.y, f"EPS Linked: {_value(sheet.eps_linked)}")
    layout.y += 6
    if show_pdu:
        layout.text(LEFT_X, layout.y, f"Parked: {_value(sheet.pdu_voltage_parked)}")
        layout.text(75, layout.y, f"Ignition: {_value(sheet.pdu_voltage_ignition)}")
        layout.text(130, layout.y, f"Idle: {_value(sheet.pdu_voltage_idle)}")
        layout.y += 6
    if show_eps:
        for step in EPS_LINK_TESTS:
            layout.text(LEFT_X, layout.y, step.label)
            layout.text(85, layout.y, _value(getattr(sheet, step.status_field)))
            layout.text(115, layout.y, getattr(sheet, step.comment_field) or "")
            layout.y += 6
    layout.y += 4


def _admin(layout: _Layout, sheet, admin_name: str):
    layout.section("admin", 3 * 6)
    layout.text(LEFT_X, layout.y, f"Administrator: {_value(admin_name)}")
    layout.text(RIGHT_X, layout.y, f"Technician: {_value(sheet.technician_name)}")
    layout.y += 6
    layout.text(LEFT_X, layout.y, f"Admin Reference: {_value(sheet.admin_reference)}")
    layout.y += 6
    layout.text(LEFT_X, layout.y, f"Technician Job Card No: {_value(sheet.technician_job_card_no)}")
    layout.y += 6


def _notes(layout: _Layout, sheet):
    layout.y += 4
    lines = simpleSplit(_value(sheet.notes), FONT, 9, CONTENT_WIDTH * mm) or [NOT_APPLICABLE]
    layout.section("notes", 6 + LINE_HEIGHT)
    layout.text(LEFT_X, layout.y, "Notes:", FONT_BOLD)
    layout.y += 6
    for line in lines:
        layout.ensure(LINE_HEIGHT)
        layout.text(LEFT_X, layout.y, line)
        layout.y += LINE_HEIGHT


def plan_report(sheet, items, admin_name: str) -> ReportPlan:
    """
    Lay out a test sheet without drawing anything.

    `sheet` is a TestSheet or TestSheetFormData; `items` are in report order
    and need test_name, status and comment.
    """
    layout = _Layout()
    _header(layout, sheet)
    _times_customer(layout, sheet)
    _vehicle(layout, sheet)
    _serials(layout, sheet)
    _tests(layout, items)
    _pdu_eps(layout, sheet)
    _admin(layout, sheet, admin_name)
    _notes(layout, sheet)
    return layout.plan


def _draw(c: canvas.Canvas, op):
    top = PAGE_HEIGHT_MM
    if isinstance(op, RectOp):
        if op.fill:
            c.setFillColor(colors.Color(0.9, 0.9, 0.9))
        c.rect(op.x * mm, (top - op.y - op.height) * mm, op.width * mm, op.height * mm,
               stroke=1, fill=1 if op.fill else 0)
        c.setFillColor(colors.black)
        return
    c.setFont(op.font, op.size)
    x, y = op.x * mm, (top - op.y) * mm
    if op.align == "center":
        c.drawCentredString(x, y, op.text)
    else:
        c.drawString(x, y, op.text)


def render_plan(plan: ReportPlan, title: str = "Test Sheet") -> bytes:
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    c.setTitle(title)
    c.setAuthor("NAE IT Technology")
    for number, ops in enumerate(plan.pages, start=1):
        c.setStrokeColor(colors.grey)
        c.setLineWidth(0.5)
        for op in ops:
            _draw(c, op)
        c.setFont(FONT_ITALIC, 8)
        c.drawCentredString(PAGE_WIDTH_MM / 2 * mm, (PAGE_HEIGHT_MM - FOOTER_Y) * mm, FOOTER_TEXT)
        c.drawRightString((PAGE_WIDTH_MM - LEFT_X) * mm, (PAGE_HEIGHT_MM - FOOTER_Y) * mm,
                          f"Page {number} of {plan.page_count}")
        # nothing may touch the canvas after the last showPage or a blank page is emitted
        c.showPage()
    c.save()
    return buffer.getvalue()


def render_pdf(sheet, items, admin_name: str) -> bytes:
    """(sheet, ordered items, administrator display name) -> PDF bytes"""
    plan = plan_report(sheet, items, admin_name)
    pdf = render_plan(plan, title=f"Test Sheet {sheet.tech_reference}")
    logger.info(f"Rendered PDF for {sheet.tech_reference}: {plan.page_count} pages, {len(items)} tests")
    return pdf


def report_filename(tech_reference: str, ext: str = "pdf") -> str:
    safe = (tech_reference or "").replace("/", "-").replace("\\", "-")
    return f"Test_Sheet_{safe}.{ext}"


def save_report(pdf: bytes, filename: str, directory: Optional[str] = None) -> Path:
    report_dir = Path(directory or settings.REPORTS_DIR)
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / Path(filename).name
    path.write_bytes(pdf)
    logger.info(f"Report saved: {path}")
    return path


def content_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII names also get an RFC 5987 filename*"""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename)
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
