"""
NAE Test Sheets - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

# Environment must be in place before config is imported
_BASE_DIR = tempfile.mkdtemp(prefix="nae-test-sheets-")
os.environ['ENCRYPTION_KEY'] = '6f' * 32
os.environ['SQLITE_DB_PATH'] = os.path.join(_BASE_DIR, 'test.db')
os.environ['DATA_DIR'] = _BASE_DIR
os.environ['LOGS_DIR'] = os.path.join(_BASE_DIR, 'logs')
os.environ['REPORTS_DIR'] = os.path.join(_BASE_DIR, 'pdfs')
os.environ['DRAFTS_DIR'] = os.path.join(_BASE_DIR, 'drafts')

from config import settings
from database import get_db
from main import app
from models import init_db
from services import pdf_service
from services.encryption import init_encryption, reset_encryption
from services.user_store import create_user, update_profile

TEST_KEY = '6f' * 32


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """Fresh database, report and draft directories for every test"""
    monkeypatch.setattr(settings, 'SQLITE_DB_PATH', str(tmp_path / 'test_sheets.db'))
    monkeypatch.setattr(settings, 'REPORTS_DIR', str(tmp_path / 'pdfs'))
    monkeypatch.setattr(settings, 'DRAFTS_DIR', str(tmp_path / 'drafts'))
    monkeypatch.setattr(settings, 'ENCRYPTION_KEY', TEST_KEY)
    reset_encryption()
    init_encryption()
    yield tmp_path
    pdf_service.set_render_client(None)
    reset_encryption()


@pytest.fixture
async def db(isolated_paths):
    """Initialized database connection"""
    await init_db()
    async with get_db() as conn:
        yield conn


@pytest.fixture
async def owner(db):
    """A user with a completed profile"""
    user = await create_user(db, 'riaan.botha@nae.co.za')
    return await update_profile(db, user.id, 'Riaan', 'Botha')


@pytest.fixture
def scenario_form_data() -> dict:
    return {
        'customer': 'Anglo American',
        'plantName': 'Shaft 3',
        'startTime': '2024-01-01T08:00',
        'administrator': 'Riaan',
        'adminReference': 'AR-100',
        'techReference': 'TR-100',
        'formType': 'Test Sheet',
    }


@pytest.fixture
async def client(isolated_paths) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client against the app (lifespan is not run)"""
    await init_db()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


async def login(ac: AsyncClient, email: str, username: str, last_name: str = None) -> dict:
    response = await ac.post('/api/auth/login', json={'username': username, 'email': email})
    assert response.status_code == 200, response.text
    user = response.json()['user']
    if last_name:
        response = await ac.post('/api/auth/complete-profile',
                                 json={'firstName': username, 'lastName': last_name})
        assert response.status_code == 200, response.text
        user = response.json()
    return user


@pytest.fixture
async def auth_client(client) -> AsyncClient:
    """Client logged in as a user with a completed profile"""
    client.user = await login(client, 'riaan.botha@nae.co.za', 'Riaan', 'Botha')
    return client
