"""
Main FastAPI application for the Alloqly backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alloqly.config import settings
from alloqly.database import close_db, init_db
from alloqly.routers import (
    assignments,
    chat,
    classes,
    extract,
    grade,
    health,
    join_class,
    profile,
    remodel,
    students,
    submissions,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


def _check_integrations() -> None:
    """Log which optional integrations are configured.  Never raises."""
    if settings.has_ai_key:
        logger.info("✓ AI endpoint: %s (model %s)", settings.AI_BASE_URL, settings.AI_MODEL)
    else:
        logger.warning(
            "⚠ ALLOQLY_AI_API_KEY is not set; remodel returns fallback variants "
            "and grading/chat/personalisation will fail"
        )

    if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.info("✓ Supabase admin API: %s", settings.SUPABASE_URL)
    else:
        logger.warning("⚠ Supabase service role not configured; invites are disabled")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Alloqly backend …")
    logger.info("=" * 60)

    # 1. Database (required; raises on failure)
    await _check_database()

    # 2. AI / Supabase (optional; logs warnings but continues)
    _check_integrations()

    logger.info("=" * 60)
    logger.info("  Alloqly backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Alloqly backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Alloqly API",
    description=(
        "**Alloqly**: neuroinclusive assignments for every learner.\n\n"
        "Teachers create classes, invite students and turn one assignment "
        "into accommodation-aware variants (ADHD, autism, dyslexia, visual, "
        "hearing, generic). Students join with a code and submit work for "
        "AI-assisted grading.\n\n"
        "Key endpoints:\n"
        "- `POST /api/assignments/extract` - upload a PDF/DOCX/RTF/TXT file\n"
        "- `POST /api/remodel` - persona variant of an assignment\n"
        "- `POST /api/grade` - grade a submission\n"
        "- `POST /api/classes/{id}/personalize` - per-student drafts\n"
        "- `POST /api/join-class` - redeem a join code\n"
    ),
    version=VERSION,
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

    # Skip noisy health-check polling from the frontend
    if request.url.path.rstrip("/") not in ("/api/health", ""):
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
# Global exception handler
# ---------------------------------------------------------------------------

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

app.include_router(health.router,         prefix="/api/health",      tags=["Health"])
app.include_router(health.config_router,  prefix="/api/config",      tags=["Health"])
app.include_router(extract.router,        prefix="/api/assignments", tags=["Assignments"])
app.include_router(assignments.router,    prefix="/api/assignments", tags=["Assignments"])
app.include_router(remodel.router,        prefix="/api/remodel",     tags=["AI"])
app.include_router(grade.router,          prefix="/api/grade",       tags=["AI"])
app.include_router(chat.router,           prefix="/api/chat",        tags=["AI"])
app.include_router(classes.router,        prefix="/api/classes",     tags=["Classes"])
app.include_router(join_class.router,     prefix="/api/join-class",  tags=["Classes"])
app.include_router(students.router,       prefix="/api/students",    tags=["Students"])
app.include_router(submissions.router,    prefix="/api/submissions", tags=["Submissions"])
app.include_router(profile.router,        prefix="/api/profile",     tags=["Profile"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: basic service info."""
    return {
        "name": "Alloqly API",
        "version": VERSION,
        "description": "Neuroinclusive assignment platform backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "assignments": "/api/assignments",
            "remodel": "/api/remodel",
            "grade": "/api/grade",
            "chat": "/api/chat",
            "classes": "/api/classes",
            "join_class": "/api/join-class",
            "students": "/api/students",
            "submissions": "/api/submissions",
            "profile": "/api/profile",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "alloqly.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
