"""
NAE Test Sheets - Excel Export Tests
"""
import io

from openpyxl import load_workbook

from services.excel_export import COLUMN_WIDTHS, WORKSHEET_TITLE, build_rows, render_xlsx
from services.pdf_service import items_from_form
from services.validation import parse_form_data


def _rows_by_label(rows):
    return {row[0]: row[1:] for row in rows if len(row) > 1}


def test_rows_cover_sheet(scenario_form_data):
    form = parse_form_data(dict(scenario_form_data, horn="Faulty", hornComment="Replaced"))
    rows = build_rows(form, items_from_form(form), "Riaan Botha")
    by_label = _rows_by_label(rows)

    assert by_label["Technology Reference"] == ["TR-100"]
    assert by_label["Start Time"] == ["01-01-2024 08:00"]
    assert by_label["End Time"] == ["In Progress"]
    assert by_label["Customer"] == ["Anglo American"]
    assert by_label["Make"] == ["N/A"]
    assert by_label["Horn"] == ["Faulty", "Replaced"]
    assert by_label["Administrator"] == ["Riaan Botha"]
    assert rows[-1] == ["No notes"]


def test_items_follow_header_in_order(scenario_form_data):
    form = parse_form_data(scenario_form_data)
    items = items_from_form(form)
    rows = build_rows(form, items, "Riaan")
    start = rows.index(["Test Name", "Status", "Comment"]) + 1
    assert [r[0] for r in rows[start:start + len(items)]] == [i.test_name for i in items]


def test_conditional_rows(scenario_form_data):
    form = parse_form_data(dict(scenario_form_data, oldSimId="OLD-SIM"))
    labels = _rows_by_label(build_rows(form, [], "Riaan"))
    assert "Old SIM-ID" not in labels
    assert "PDU Voltage (Idle)" not in labels
    assert "1. Power ON Received" not in labels

    form = parse_form_data(dict(scenario_form_data, unitsReplaced="Yes", oldSimId="OLD-SIM",
                                pduInstalled="Installed", epsLinked="Yes",
                                epsTrip1Status="Working", epsTrip1Comment="Bypass"))
    labels = _rows_by_label(build_rows(form, [], "Riaan"))
    assert labels["Old SIM-ID"] == ["OLD-SIM"]
    assert "PDU Voltage (Idle)" in labels
    assert labels["2. EPS Trip Tested"] == ["Working", "Bypass"]


def test_render_xlsx(scenario_form_data):
    form = parse_form_data(dict(scenario_form_data, notes="All good"))
    data = render_xlsx(form, items_from_form(form), "Riaan")

    wb = load_workbook(io.BytesIO(data))
    ws = wb[WORKSHEET_TITLE]
    values = [[c for c in row if c not in (None, "")] for row in ws.iter_rows(values_only=True)]
    assert ["Technology Reference", "TR-100"] in values
    assert ["Horn", "N/A"] in values
    assert values[-1] == ["All good"]
    assert ws["A1"].font.bold
    for column, width in COLUMN_WIDTHS.items():
        assert ws.column_dimensions[column].width == width
