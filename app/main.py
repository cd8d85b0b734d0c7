"""
Venue Gallery Backend — FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn app.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware Chain:                                      │
    │  ┌────────────┐ ┌────────┐ ┌─────────┐ ┌──────┐ ┌──────┐│
    │  │ Rate Limit │→│ Req ID │→│ Logging │→│ GZip │→│ CORS ││
    │  └────────────┘ └────────┘ └─────────┘ └──────┘ └──────┘│
    │                                                         │
    │  Routes:                                                │
    │  ┌────────────────┐ ┌────────────┐ ┌──────────────────┐ │
    │  │ /api/categories│ │ /api/images│ │ /health, /       │ │
    │  └────────────────┘ └────────────┘ └──────────────────┘ │
    │                                                         │
    │  Exception Handlers:                                    │
    │  ┌─────────────────────────────────────────────────────┐│
    │  │ Validation→400 │ NotFound→404 │ Conflict→409 │ →500 ││
    │  └─────────────────────────────────────────────────────┘│
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Report missing production configuration (without exiting)
    3. Log startup complete

    Shutdown:
    1. Dispose database engine (close all connections)
    2. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.config import settings
from app.database import dispose_engine
from app.exceptions import (
    AssetHostError,
    ConflictError,
    DatabaseError,
    GalleryError,
    NotFoundError,
    ValidationError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import categories, health, images

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: 2026-10-18T12:00:00 [INFO] app.services.image_service: Image uploaded: ...

    Called once during app startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation at DEBUG/INFO
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "cloudinary", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Venue Gallery Backend starting up (environment: %s)", settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and read endpoints work without the asset host
        logger.error("Configuration error: %s", str(e))
        logger.error("Uploads and deletions will fail until this is fixed.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Venue Gallery Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(message: str, errors: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    """
    Flatten FastAPI validation errors into [{"field", "message"}].

    The location prefix (body / query / path / header) is dropped:
    ("query", "limit") → "limit", ("body", "tags", 0) → "tags.0".
    """
    entries = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        field = ".".join(loc[1:]) if len(loc) > 1 else ".".join(loc)
        entries.append({"field": field or "request", "message": error.get("msg", "Invalid value")})
    return entries


def _is_malformed_id(exc: RequestValidationError) -> bool:
    errors = exc.errors()
    return bool(errors) and all(
        error.get("loc", ())[:1] == ("path",) and error.get("type") == "string_pattern_mismatch"
        for error in errors
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception kinds to the error envelope.

    Handler hierarchy:
        RequestValidationError → 400 (malformed ids: "Invalid id format")
        ValidationError        → 400
        NotFoundError          → 404
        ConflictError          → 409
        AssetHostError         → 500
        DatabaseError          → 500 (generic message)
        GalleryError (base)    → 500
        HTTPException          → its own status (unknown routes → 404)
        Exception (fallback)   → 500, detail only in development

    Handlers never put stack traces or SQL in the response; details are
    logged server-side with the request id.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = field_errors(exc)
        logger.warning("[%s] Request validation failed on %s: %s", rid, request.url.path, errors)
        message = "Invalid id format" if _is_malformed_id(exc) else "Validation failed"
        return JSONResponse(status_code=400, content=error_body(message, errors))

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(status_code=400, content=error_body(exc.message, exc.errors))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(exc.message))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        rid = request_id_var.get("")
        logger.info("[%s] Conflict: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=409, content=error_body(exc.message))

    @app.exception_handler(AssetHostError)
    async def handle_asset_host_error(request: Request, exc: AssetHostError):
        rid = request_id_var.get("")
        logger.error("[%s] Asset host error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(exc.message))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=error_body("An internal error occurred. Please try again later."),
        )

    @app.exception_handler(GalleryError)
    async def handle_gallery_error(request: Request, exc: GalleryError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        message = "Something went wrong"
        if settings.is_development:
            message = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=error_body(message))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    app = FastAPI(
        title="Venue Gallery API",
        description=(
            "Venue photo galleries: categories of images stored on Cloudinary, "
            "with homepage sections, search, pagination and statistics."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS → route

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # Small JSON envelopes are not worth compressing
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(categories.router)
    app.include_router(images.router)
    app.include_router(health.router)

    return app


# uvicorn expects `app.main:app` to be importable
app = create_app()
