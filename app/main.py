"""
Main FastAPI application for the Draftsmith backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import AsyncSessionLocal, close_db, fail_interrupted_jobs, init_db
from app.routers import generate, health, templates, users
from app.services.content_provider import ContentProvider, build_content_provider
from app.services.errors import NotFound
from app.services.orchestrator import build_orchestrator

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> None:
    """Initialise DB tables, verify the connection and fail orphaned jobs."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise

    interrupted = await fail_interrupted_jobs()
    if interrupted:
        logger.warning("  %d job(s) from a previous run marked as failed", interrupted)


async def _check_provider(provider: ContentProvider) -> bool:
    """Probe the content provider.  Never raises; warnings are logged instead."""
    try:
        healthy = await provider.check_health()
    except Exception as exc:
        logger.error("✗ Content provider '%s' unreachable (%s)", provider.name, exc)
        return False

    if healthy:
        logger.info("✓ Content provider '%s' reachable", provider.name)
    else:
        logger.warning(
            "⚠ Content provider '%s' is not ready; generation jobs will fail until it is",
            provider.name,
        )
    return healthy


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Draftsmith backend …")
    logger.info("=" * 60)

    # 1 — Database (required; raises on failure)
    await _check_database()

    # 2 — Storage directories
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
    logger.info("✓ Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))
    logger.info("✓ Output directory: %s", os.path.abspath(settings.OUTPUT_DIR))

    # 3 — Content provider (optional; logs warnings but continues)
    provider = build_content_provider(settings)
    await _check_provider(provider)

    # 4 — Generation services
    orchestrator = build_orchestrator(settings, provider, AsyncSessionLocal)
    if not orchestrator.assembler.converter.is_available():
        logger.warning(
            "⚠ LibreOffice not found at '%s'; PDF conversion will fail",
            settings.LIBREOFFICE_PATH,
        )
    app.state.provider = provider
    app.state.orchestrator = orchestrator

    logger.info("=" * 60)
    logger.info("  Draftsmith backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Draftsmith backend …")
    await orchestrator.runner.drain(timeout=30)
    await provider.aclose()
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Draftsmith API",
    description=(
        "**Draftsmith** — AI-assisted document generation from templates.\n\n"
        "Upload a DOCX template with section placeholders such as "
        "`{{INTRODUCTION}}`, then generate a filled DOCX and PDF for one or "
        "more topics.\n\n"
        "Key endpoints:\n"
        "- `POST /api/templates/upload` — upload a template\n"
        "- `POST /api/generate` — start a generation job\n"
        "- `GET  /api/generate/{id}` — poll job status and preview\n"
        "- `GET  /api/generate/{id}/download/{format}` — download DOCX or PDF\n"
        "- `GET  /api/users/history` — past jobs\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy polling from the frontend
    if request.url.path not in ("/api/health", "/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    """Map a missing (or foreign-owned) template or document to a 404."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,     prefix="/api/health",    tags=["Health"])
app.include_router(templates.router,  prefix="/api/templates", tags=["Templates"])
app.include_router(generate.router,   prefix="/api/generate",  tags=["Generate"])
app.include_router(users.router,      prefix="/api/users",     tags=["Users"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root — returns basic service info."""
    return {
        "name": "Draftsmith API",
        "version": "0.1.0",
        "description": "Template-driven document generation backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "templates": "/api/templates",
            "generate": "/api/generate",
            "users": "/api/users",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
