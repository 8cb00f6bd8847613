"""
NAE Test Sheets - System Configuration
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): ENCRYPTION_KEY is mandatory; startup fails instead of
                      falling back to a random per-process key
v1.0.0 (2026-09-28): Initial configuration module
"""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path
import os


class Settings(BaseSettings):
    """System-wide configuration"""

    # Application
    APP_NAME: str = "NAE IT Technology Test Sheets"
    APP_VERSION: str = "1.1.0"
    DEBUG: bool = False

    # API Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_WORKERS: int = 1

    # SQLite Configuration
    SQLITE_DB_PATH: str = str(Path(__file__).parent / "data" / "test_sheets.db")

    # File Paths
    DATA_DIR: str = str(Path(__file__).parent / "data")
    REPORTS_DIR: str = str(Path(__file__).parent / "data" / "pdfs")
    LOGS_DIR: str = str(Path(__file__).parent / "logs")
    DRAFTS_DIR: str = str(Path(__file__).parent / "data" / "drafts")

    # Encryption (AES-256-GCM, 32-byte key as 64 hex chars)
    ENCRYPTION_KEY: str = ""  # Generate with: openssl rand -hex 32

    # Authentication
    ALLOWED_EMAIL_DOMAINS: List[str] = ["@nae.co.za", "@gmail.com"]
    SESSION_COOKIE_NAME: str = "nae_sid"
    SESSION_TTL_HOURS: int = 24

    # External PDF rendering service (headless browser behind HTTP)
    PDF_RENDER_URL: str = "http://localhost:3001/render"
    PDF_RENDER_TIMEOUT: float = 30.0  # seconds

    # Client draft storage
    DRAFT_STORAGE_KEY: str = "test-sheet-draft"

    # Listings
    RECENT_SHEETS_LIMIT: int = 5
    SEARCH_PAGE_SIZE: int = 20
    SEARCH_MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Singleton instance
settings = Settings()


# Create required directories
def init_directories():
    """Create necessary directories if they don't exist"""
    for directory in [settings.DATA_DIR, settings.REPORTS_DIR,
                      settings.LOGS_DIR, settings.DRAFTS_DIR]:
        os.makedirs(directory, exist_ok=True)
    os.makedirs(os.path.dirname(os.path.abspath(settings.SQLITE_DB_PATH)),
                exist_ok=True)


if __name__ == "__main__":
    print(f"{settings.APP_NAME} Configuration v{settings.APP_VERSION}")
    print(f"SQLite: {settings.SQLITE_DB_PATH}")
    print(f"Reports: {settings.REPORTS_DIR}")
    print(f"PDF renderer: {settings.PDF_RENDER_URL}")
    print(f"Allowed domains: {', '.join(settings.ALLOWED_EMAIL_DOMAINS)}")
    print(f"Encryption key set: {'yes' if settings.ENCRYPTION_KEY else 'NO'}")
