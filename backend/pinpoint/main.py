"""
Pinpoint Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   `create_app(settings)` builds the service registry, registers
       middleware, exception handlers, routers, the static upload mount and
       the realtime WebSocket.
Who:   uvicorn (`uvicorn pinpoint.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐        │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │        │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘        │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────┐ ┌──────────────┐ ┌──────────────────┐ │
    │  │ GET /api │ │ /api/User,Me │ │ /api/Image       │ │
    │  └──────────┘ └──────────────┘ └──────────────────┘ │
    │  ┌──────────────────────────┐ ┌──────────────────┐  │
    │  │ /api/Marker[/…/Comment]  │ │ WS /realtime     │  │
    │  └──────────────────────────┘ └──────────────────┘  │
    │  Static: /upload/<id>.<ext>                         │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → upload directory → (optional) create tables →
              attach realtime hub
    Shutdown: close realtime hub → dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from pinpoint import __description__, __version__
from pinpoint.config import Settings
from pinpoint.config import settings as default_settings
from pinpoint.exceptions import (
    AuthError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    PinpointError,
    ValidationError,
)
from pinpoint.middleware.logging import RequestLoggingMiddleware
from pinpoint.middleware.request_id import RequestIDMiddleware, request_id_var
from pinpoint.registry import ServiceRegistry, build_registry
from pinpoint.routes import api_info, images, markers, realtime, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger once, at startup.

    Format: 2024-01-15T12:00:00 [INFO] pinpoint.access: GET /api 200 3.1ms …
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # uvicorn's own access log duplicates pinpoint.access
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    registry: ServiceRegistry = app.state.registry
    settings = registry.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings)
    logger.info("Pinpoint %s starting (%s)", __version__, settings.environment)

    upload_root = registry.files.ensure_root()
    logger.info("Upload directory: %s", upload_root)

    if settings.db_create_all:
        await registry.database.create_all()
        logger.info("Database tables created")

    registry.realtime.attach()
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Pinpoint shutting down...")
    registry.realtime.close()
    await registry.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details=None, headers=None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """
    Map exceptions to status codes and `{error, message, details?, request_id}`.

    Handler hierarchy:
        RequestValidationError → 400 (malformed body / params)
        ValidationError        → 400
        AuthError              → 401 (+ WWW-Authenticate)
        ForbiddenError         → 403
        NotFoundError          → 404
        DuplicateKeyError      → 409
        PinpointError (rest)   → 500 (SigningError, DatabaseError, FileStorageError)
        HTTPException          → its own status (unknown route, wrong method)
        Exception              → 500

    Client errors return their context as `details`; server errors only log it.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
            for e in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error(400, "validation_error", "Request validation failed", {"errors": errors})

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return _error(401, "unauthorized", exc.message, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("[%s] Forbidden: %s", request_id_var.get(""), exc.context)
        return _error(403, "forbidden", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate(request: Request, exc: DuplicateKeyError):
        return _error(409, "duplicate_key", exc.message, {"field": exc.field})

    @app.exception_handler(PinpointError)
    async def handle_server_error(request: Request, exc: PinpointError):
        # Paths, SQL and key sizes stay in the log
        logger.error(
            "[%s] %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return _error(500, "server_error", exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error(
            exc.status_code,
            "http_error",
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
        details = None
        if not settings.is_production:
            details = {"exception": type(exc).__name__, "detail": str(exc)}
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
            details,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble one application around its own service registry.

    Args:
        settings: Configuration; the environment-derived default when omitted.
                  Tests pass their own (temporary SQLite file, cheap scrypt).
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Pinpoint API",
        description=__description__,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.registry = build_registry(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        # session cookie
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Location"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app, settings)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(api_info.router)
    app.include_router(users.router)
    app.include_router(images.router)
    app.include_router(markers.router)
    app.include_router(realtime.router)

    # Created at startup by the lifespan, hence check_dir=False
    app.mount(
        settings.serve_upload_path,
        StaticFiles(directory=settings.upload_root, check_dir=False),
        name="upload",
    )

    return app


# uvicorn pinpoint.main:app
app = create_app()
