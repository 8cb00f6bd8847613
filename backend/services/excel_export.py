"""
NAE Test Sheets - Excel Export Service
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Single-sheet XLSX export of a test sheet

One flat worksheet: section headers are single-cell rows, key/value pairs are
two-column rows, and the tests block is a header row followed by one row per
item in report order.
"""

import io
import logging
from typing import List

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from models.constants import EPS_LINK_TESTS, NOT_APPLICABLE
from services.report_generator import format_time
from services.validation import old_identifiers, eps_link_applicable, pdu_applicable

logger = logging.getLogger(__name__)

WORKSHEET_TITLE = "Test Sheet"
COLUMN_WIDTHS = {"A": 25, "B": 40, "C": 30}
TITLE_ROW = "NAE IT Technology TEST SHEET"

_HEADER_FONT = Font(bold=True)
_TABLE_HEADER_FILL = PatternFill(start_color="E6E6E6", end_color="E6E6E6", fill_type="solid")


def _or_na(value) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return NOT_APPLICABLE
    return str(value)


def build_rows(sheet, items, admin_name: str) -> List[list]:
    """Worksheet content as a list of rows ([] is a blank row)"""
    rows: List[list] = [
        [TITLE_ROW],
        [],
        ["Technology Reference", sheet.tech_reference],
        ["Form Type", sheet.form_type],
        ["Admin Reference", sheet.admin_reference],
        [],
        ["Start Time", format_time(sheet.start_time)],
        ["End Time", format_time(sheet.end_time, "In Progress")],
        [],
        ["Customer", sheet.customer],
        ["Plant Name", sheet.plant_name],
        ["Instruction", _or_na(sheet.instruction)],
        [],
        ["VEHICLE DETAILS"],
        ["Make", _or_na(sheet.vehicle_make)],
        ["Model", _or_na(sheet.vehicle_model)],
        ["Voltage", _or_na(sheet.vehicle_voltage)],
        [],
        ["SERIAL NUMBERS"],
        ["Serial (ESN)", sheet.serial_esn or ""],
        ["SIM-ID", sheet.sim_id or ""],
        ["IZWI Serial", sheet.izwi_serial or ""],
        ["EPS Serial", sheet.eps_serial or ""],
        [],
        ["Units Replaced", _or_na(sheet.units_replaced)],
    ]
    rows.extend([label, value] for label, value in old_identifiers(sheet))
    rows.append([])

    rows.append(["TEST RESULTS"])
    rows.append(["Test Name", "Status", "Comment"])
    for item in items:
        rows.append([item.test_name, item.status, item.comment or ""])

    rows.append([])
    rows.append(["ADDITIONAL INFORMATION"])
    rows.append(["PDU Installed", _or_na(sheet.pdu_installed)])
    if pdu_applicable(sheet):
        rows.append(["PDU Voltage (Parked)", _or_na(sheet.pdu_voltage_parked)])
        rows.append(["PDU Voltage (Ignition)", _or_na(sheet.pdu_voltage_ignition)])
        rows.append(["PDU Voltage (Idle)", _or_na(sheet.pdu_voltage_idle)])
    rows.append(["EPS Linked", _or_na(sheet.eps_linked)])
    if eps_link_applicable(sheet):
        for step in EPS_LINK_TESTS:
            rows.append([step.label, getattr(sheet, step.status_field),
                         getattr(sheet, step.comment_field) or ""])
    rows.append([])
    rows.append(["Administrator", admin_name])
    rows.append(["Technician", _or_na(sheet.technician_name)])
    rows.append(["Technician Job Card No", sheet.technician_job_card_no or ""])
    rows.append(["Odometer/Engine Hours", sheet.odometer_engine_hours or ""])
    rows.append([])
    rows.append(["NOTES"])
    rows.append([sheet.notes or "No notes"])
    return rows


_SECTION_TITLES = {
    TITLE_ROW, "VEHICLE DETAILS", "SERIAL NUMBERS", "TEST RESULTS",
    "ADDITIONAL INFORMATION", "NOTES",
}


def render_xlsx(sheet, items, admin_name: str) -> bytes:
    """(sheet, ordered items, administrator display name) -> XLSX bytes"""
    wb = Workbook()
    ws = wb.active
    ws.title = WORKSHEET_TITLE

    for row in build_rows(sheet, items, admin_name):
        ws.append(row)
        if len(row) == 1 and row[0] in _SECTION_TITLES:
            ws.cell(row=ws.max_row, column=1).font = _HEADER_FONT
        elif row == ["Test Name", "Status", "Comment"]:
            for col in range(1, 4):
                cell = ws.cell(row=ws.max_row, column=col)
                cell.font = _HEADER_FONT
                cell.fill = _TABLE_HEADER_FILL

    for column, width in COLUMN_WIDTHS.items():
        ws.column_dimensions[column].width = width

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Rendered XLSX for {sheet.tech_reference}: {len(items)} tests")
    return buffer.getvalue()
