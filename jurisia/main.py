"""
Main FastAPI application for the JurisIA backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jurisia.config import settings
from jurisia.database import close_db, init_db
from jurisia.dependencies.services import (
    build_analysis_cache,
    build_jurisprudence_cache,
    build_llm_service,
)
from jurisia.routers import analysis, chat, conversations, health, jurisprudence
from jurisia.services.chat_service import ChatValidationError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


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


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting JurisIA backend …")
    logger.info("=" * 60)

    # 1 - Database (required; raises on failure)
    await _check_database()

    # 2 - LLM provider (optional; analysis falls back to local heuristics)
    app.state.llm_service = build_llm_service()
    if app.state.llm_service.is_configured:
        logger.info("✓ Groq configured - model %s", settings.GROQ_MODEL)
    else:
        logger.warning(
            "⚠ GROQ_API_KEY is not set - chat and jurisprudence will answer in "
            "degraded mode and analysis will use local heuristics."
        )
    logger.info("  Analysis mode: %s", settings.resolved_analysis_mode())

    # 3 - Caches (process-wide, swept in the background)
    app.state.analysis_cache = build_analysis_cache()
    app.state.jurisprudence_cache = build_jurisprudence_cache()
    app.state.analysis_cache.start_sweeper()
    app.state.jurisprudence_cache.start_sweeper()

    logger.info("=" * 60)
    logger.info("  JurisIA backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down JurisIA backend …")
    await app.state.analysis_cache.stop_sweeper()
    await app.state.jurisprudence_cache.stop_sweeper()
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="JurisIA API",
    description=(
        "**JurisIA** - assistente jurídico para o direito brasileiro.\n\n"
        "Key endpoints:\n"
        "- `POST /api/documents/analysis` - contextual document analysis\n"
        "- `GET  /api/documents/{id}/history` - stored analyses\n"
        "- `POST /api/chat/send` - legal chat with retries and deadline\n"
        "- `GET  /api/conversations` - user's conversations\n"
        "- `POST /api/jurisprudence/search` - jurisprudence lookup\n"
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

    # Skip noisy health-check polling from the frontend
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

def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing request fields → 400."""
    details = _format_validation_errors(exc)
    logger.info("Rejected %s %s: %s", request.method, request.url.path, details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": details},
    )


@app.exception_handler(ChatValidationError)
async def chat_validation_exception_handler(request: Request, exc: ChatValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": str(exc)},
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
            "error": "Internal server error",
            "details": str(exc),
            "path": str(request.url.path),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,        prefix="/api/health",        tags=["Health"])
app.include_router(analysis.router,      prefix="/api/documents",     tags=["Documents"])
app.include_router(chat.router,          prefix="/api/chat",          tags=["Chat"])
app.include_router(conversations.router, prefix="/api/conversations", tags=["Conversations"])
app.include_router(jurisprudence.router, prefix="/api/jurisprudence", tags=["Jurisprudence"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root - returns basic service info."""
    return {
        "name": "JurisIA API",
        "version": "0.1.0",
        "description": "Brazilian legal assistant backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "analysis": "/api/documents/analysis",
            "chat": "/api/chat/send",
            "conversations": "/api/conversations",
            "jurisprudence": "/api/jurisprudence/search",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jurisia.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
