"""
NAE Test Sheets - Main FastAPI Application
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-12): Startup fails without a valid ENCRYPTION_KEY; expired
                      sessions pruned at startup; templates and admin routers
v1.0.0 (2026-09-28): Initial FastAPI application
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging
import os
from pathlib import Path

from config import settings, init_directories
from database import get_db
from errors import TestSheetError, SheetValidationError
from api import auth, test_sheets, templates, pdf, admin
from services.encryption import init_encryption
from services.session_store import prune_expired_sessions

# Configure logging
os.makedirs(settings.LOGS_DIR, exist_ok=True)
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(f'{settings.LOGS_DIR}/api.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Create necessary directories
    init_directories()

    # Refuse to run without an encryption key
    init_encryption()

    # Initialize database
    from models import init_db
    await init_db()

    async with get_db() as db:
        await prune_expired_sessions(db)

    logger.info("Startup complete")

    yield

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Vehicle and equipment test sheet capture, review and export",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SheetValidationError)
async def sheet_validation_handler(request: Request, exc: SheetValidationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "Validation failed", "errors": [e.to_dict() for e in exc.errors]},
    )


@app.exception_handler(TestSheetError)
async def test_sheet_error_handler(request: Request, exc: TestSheetError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Include API routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(test_sheets.router, prefix="/api/test-sheets", tags=["Test Sheets"])
app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])
app.include_router(pdf.router, prefix="/api/pdf", tags=["PDF"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "app": settings.APP_NAME
    }


# Serve static files (frontend build)
frontend_build = Path(__file__).parent.parent / "frontend" / "build"
if frontend_build.exists():
    app.mount("/", StaticFiles(directory=str(frontend_build), html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        workers=settings.API_WORKERS
    )
