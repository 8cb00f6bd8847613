"""
NAE Test Sheets - API Endpoint Tests
"""
from pathlib import Path

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from conftest import login
from config import settings
from errors import SheetValidationError
from main import app
from services import pdf_service
from services.form_state import TestSheetForm


async def _submit(ac: AsyncClient, data: dict):
    return await ac.post("/api/test-sheets", json=data)


# ============================================================================
# Health
# ============================================================================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ============================================================================
# Auth
# ============================================================================

@pytest.mark.asyncio
async def test_login_rejects_other_domain(client):
    response = await client.post("/api/auth/login",
                                 json={"username": "x", "email": "x@example.com"})
    assert response.status_code == 403
    assert "@nae.co.za" in response.json()["detail"]


@pytest.mark.asyncio
async def test_login_rejects_malformed_email(client):
    response = await client.post("/api/auth/login",
                                 json={"username": "x", "email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter a valid email address"


@pytest.mark.asyncio
async def test_unauthenticated_requests_rejected(client):
    assert (await client.get("/api/auth/user")).status_code == 401
    assert (await client.get("/api/test-sheets")).status_code == 401
    assert (await client.get("/api/templates")).status_code == 401


@pytest.mark.asyncio
async def test_login_creates_user_needing_profile(client):
    user = await login(client, "Riaan.Botha@nae.co.za", "Riaan")
    assert user["email"] == "riaan.botha@nae.co.za"
    assert user["firstName"] == "Riaan"
    assert user["needsProfileSetup"] is True

    response = await client.get("/api/auth/user")
    assert response.status_code == 200
    assert response.json()["id"] == user["id"]


@pytest.mark.asyncio
async def test_complete_profile(client):
    await login(client, "riaan.botha@nae.co.za", "Riaan")
    response = await client.post("/api/auth/complete-profile",
                                 json={"firstName": "Riaan", "lastName": "Botha"})
    assert response.status_code == 200
    body = response.json()
    assert body["needsProfileSetup"] is False
    assert body["displayName"] == "Riaan Botha"
    assert body["userNumber"] == 1

    response = await client.post("/api/auth/complete-profile",
                                 json={"firstName": "Riaan", "lastName": " "})
    assert response.status_code == 422
    assert response.json()["errors"] == [{"field": "lastName", "message": "Last name is required"}]


@pytest.mark.asyncio
async def test_logout_ends_session(auth_client):
    response = await auth_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert (await auth_client.get("/api/auth/user")).status_code == 401


@pytest.mark.asyncio
async def test_submit_requires_complete_profile(client, scenario_form_data):
    await login(client, "riaan.botha@nae.co.za", "Riaan")
    response = await _submit(client, scenario_form_data)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please complete your profile first"


# ============================================================================
# Test sheets
# ============================================================================

@pytest.mark.asyncio
async def test_submit_scenario_end_to_end(auth_client, scenario_form_data):
    response = await _submit(auth_client, scenario_form_data)
    assert response.status_code == 201, response.text
    sheet = response.json()
    assert sheet["techReference"] == "TR-100"
    assert sheet["isDraft"] is False
    assert sheet["endTime"] is None
    assert sheet["userId"] == auth_client.user["id"]
    assert len(sheet["testItems"]) == 22
    assert {item["status"] for item in sheet["testItems"]} == {"N/A"}
    assert sheet["formData"]["reverseSiren"] == "N/A"

    response = await auth_client.get("/api/test-sheets")
    assert [s["techReference"] for s in response.json()] == ["TR-100"]
    assert "administratorSignature" not in response.json()[0]

    response = await auth_client.get(f"/api/test-sheets/{sheet['id']}/export/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == \
        'attachment; filename="Test_Sheet_TR-100.pdf"'
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_submit_generates_missing_references(auth_client, scenario_form_data):
    data = dict(scenario_form_data, techReference="", adminReference="")
    response = await _submit(auth_client, data)
    assert response.status_code == 201, response.text
    sheet = response.json()
    assert sheet["techReference"].startswith("TS")
    assert sheet["adminReference"].startswith("RB01-Shaft 3-AN")


@pytest.mark.asyncio
async def test_duplicate_tech_reference(auth_client, scenario_form_data):
    assert (await _submit(auth_client, scenario_form_data)).status_code == 201
    response = await _submit(auth_client, scenario_form_data)
    assert response.status_code == 409
    assert "TR-100" in response.json()["detail"]
    assert len((await auth_client.get("/api/test-sheets")).json()) == 1


@pytest.mark.asyncio
async def test_validation_errors_are_field_addressed(auth_client, scenario_form_data):
    data = dict(scenario_form_data, customer="", reverseSiren="Broken")
    response = await _submit(auth_client, data)
    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Validation failed"
    assert {e["field"] for e in body["errors"]} == {"customer", "reverseSiren"}


@pytest.mark.asyncio
async def test_cannot_submit_for_another_user(auth_client, scenario_form_data):
    response = await _submit(auth_client, dict(scenario_form_data, userId="someone-else"))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_other_users_cannot_read_sheet(auth_client, scenario_form_data):
    sheet = (await _submit(auth_client, scenario_form_data)).json()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as other:
        await login(other, "promise@gmail.com", "Promise", "Ndlovu")
        assert (await other.get(f"/api/test-sheets/{sheet['id']}")).status_code == 403
        assert (await other.delete(f"/api/test-sheets/{sheet['id']}")).status_code == 403
        response = await other.get("/api/test-sheets/job-card/AR-100")
        assert response.status_code == 403
        # the overview listing still shows every sheet
        all_sheets = (await other.get("/api/test-sheets/all")).json()
        assert [s["id"] for s in all_sheets] == [sheet["id"]]


@pytest.mark.asyncio
async def test_get_patch_delete(auth_client, scenario_form_data):
    sheet = (await _submit(auth_client, scenario_form_data)).json()
    url = f"/api/test-sheets/{sheet['id']}"

    response = await auth_client.get(url)
    assert response.status_code == 200
    assert response.json()["customer"] == "Anglo American"

    response = await auth_client.patch(url, json={"horn": "Faulty", "hornComment": "No Stock",
                                                  "endTime": "2024-01-01T11:00"})
    assert response.status_code == 200, response.text
    body = response.json()
    horn = next(i for i in body["testItems"] if i["testName"] == "Horn")
    assert (horn["status"], horn["comment"]) == ("Faulty", "No Stock")
    assert body["formData"]["horn"] == "Faulty"
    assert body["endTime"] is not None

    response = await auth_client.patch(url, json={"techReference": "TR-200"})
    assert response.status_code == 422
    response = await auth_client.patch(url, json={"techReference": 100})
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "techReference"

    assert (await auth_client.delete(url)).status_code == 200
    assert (await auth_client.get(url)).status_code == 404


@pytest.mark.asyncio
async def test_missing_sheet_is_404(auth_client):
    assert (await auth_client.get("/api/test-sheets/missing")).status_code == 404
    assert (await auth_client.get("/api/test-sheets/job-card/none")).status_code == 404


@pytest.mark.asyncio
async def test_xlsx_export(auth_client, scenario_form_data):
    sheet = (await _submit(auth_client, scenario_form_data)).json()
    response = await auth_client.get(f"/api/test-sheets/{sheet['id']}/export/xlsx")
    assert response.status_code == 200
    assert response.headers["content-disposition"] == \
        'attachment; filename="Test_Sheet_TR-100.xlsx"'
    assert response.content[:2] == b"PK"


@pytest.mark.asyncio
async def test_exports_with_non_latin1_tech_reference(auth_client, scenario_form_data):
    sheet = (await _submit(auth_client, dict(scenario_form_data, techReference="TR-100\u2713"))).json()
    for ext in ("pdf", "xlsx"):
        response = await auth_client.get(f"/api/test-sheets/{sheet['id']}/export/{ext}")
        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            f'attachment; filename="Test_Sheet_TR-100_.{ext}"; '
            f"filename*=UTF-8''Test_Sheet_TR-100%E2%9C%93.{ext}"
        )


@pytest.mark.asyncio
async def test_recent_stats_and_search(auth_client, scenario_form_data):
    await _submit(auth_client, scenario_form_data)
    await _submit(auth_client, dict(scenario_form_data, techReference="TR-101",
                                    customer="Exxaro"))

    recent = (await auth_client.get("/api/test-sheets/recent")).json()
    assert len(recent) == 2

    stats = (await auth_client.get("/api/test-sheets/stats")).json()
    assert stats["total"] == 2

    response = await auth_client.get("/api/test-sheets/search",
                                     params={"customer": "Exxaro", "pageSize": 10})
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["techReference"] == "TR-101"
    assert body["pageSize"] == 10

    job_card = (await auth_client.get("/api/test-sheets/job-card/AR-100")).json()
    assert job_card["adminReference"] == "AR-100"


@pytest.mark.asyncio
async def test_form_state_submit(auth_client, scenario_form_data):
    form = TestSheetForm.from_dict(scenario_form_data)
    form.update_field("horn", "Working")
    created = await form.submit(auth_client, auth_client.user["id"])
    assert created["techReference"] == "TR-100"

    invalid = TestSheetForm.from_dict(dict(scenario_form_data, customer="", techReference="TR-9"))
    with pytest.raises(SheetValidationError) as exc_info:
        await invalid.submit(auth_client, auth_client.user["id"])
    assert [e.field for e in exc_info.value.errors] == ["customer"]


# ============================================================================
# Templates and admin
# ============================================================================

@pytest.mark.asyncio
async def test_templates(auth_client, scenario_form_data):
    default = (await auth_client.get("/api/templates/default")).json()
    assert len(default["testNames"]) == 22

    response = await auth_client.post("/api/templates", json={
        "name": "Pump", "testNames": ["Horn", "Pressure Switch"], "isDefault": True,
    })
    assert response.status_code == 201
    template = response.json()

    sheet = (await _submit(auth_client, scenario_form_data)).json()
    assert [i["testName"] for i in sheet["testItems"]] == ["Horn", "Pressure Switch"]

    await auth_client.post(f"/api/templates/{default['id']}/default")
    assert (await auth_client.get("/api/templates/default")).json()["id"] == default["id"]
    assert (await auth_client.delete(f"/api/templates/{template['id']}")).status_code == 200
    assert (await auth_client.delete(f"/api/templates/{template['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_admin_endpoints(auth_client, scenario_form_data):
    await _submit(auth_client, scenario_form_data)

    activity = (await auth_client.get("/api/admin/user-activity")).json()
    assert activity[0]["email"] == "riaan.botha@nae.co.za"
    assert activity[0]["loginCount"] == 1
    assert activity[0]["testSheetCount"] == 1

    stats = (await auth_client.get("/api/admin/login-stats")).json()
    assert stats == {"todayCount": 1, "todayUniqueUsers": 1}

    users = (await auth_client.get("/api/admin/users")).json()
    assert users[0]["displayName"] == "Riaan Botha"
    assert users[0]["sheetCount"] == 1


# ============================================================================
# PDF endpoints
# ============================================================================

@pytest.mark.asyncio
async def test_generate_test_sheet_pdf(auth_client, scenario_form_data):
    response = await auth_client.post("/api/pdf/generate-test-sheet",
                                      json={"formData": scenario_form_data, "saveToDisk": True})
    assert response.status_code == 200
    assert response.headers["content-disposition"] == \
        'attachment; filename="Test_Sheet_TR-100.pdf"'
    assert response.content.startswith(b"%PDF")
    assert (Path(settings.REPORTS_DIR) / "Test_Sheet_TR-100.pdf").exists()


@pytest.mark.asyncio
async def test_generate_test_sheet_requires_form_data(auth_client):
    response = await auth_client.post("/api/pdf/generate-test-sheet", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Form data is required"


@pytest.mark.asyncio
async def test_generate_from_html(auth_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"%PDF-1.7 fake",
                              headers={"content-type": "application/pdf"})

    pdf_service.set_render_client(
        pdf_service.HtmlRenderClient(url="http://renderer/render",
                                     transport=httpx.MockTransport(handler)))
    response = await auth_client.post("/api/pdf/generate-from-html",
                                      json={"html": "<h1>Test</h1>"})
    assert response.status_code == 200
    assert response.content == b"%PDF-1.7 fake"

    response = await auth_client.post("/api/pdf/generate-from-html", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_renderer_failure_is_502_with_message(auth_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="Chromium crashed")

    pdf_service.set_render_client(
        pdf_service.HtmlRenderClient(url="http://renderer/render",
                                     transport=httpx.MockTransport(handler)))
    response = await auth_client.post("/api/pdf/generate-from-html",
                                      json={"html": "<h1>Test</h1>"})
    assert response.status_code == 502
    assert "Chromium crashed" in response.json()["detail"]


@pytest.mark.asyncio
async def test_pdf_health(client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/health"
        return httpx.Response(200, json={"ok": True})

    pdf_service.set_render_client(
        pdf_service.HtmlRenderClient(url="http://renderer/render",
                                     transport=httpx.MockTransport(handler)))
    body = (await client.get("/api/pdf/health")).json()
    assert body["status"] == "ok"
    assert body["renderer"] == "ok"
