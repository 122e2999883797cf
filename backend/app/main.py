"""
ClubShelf Voting Backend — FastAPI Application Factory
========================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn app.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌────────┐ ┌──────┐           │
    │  │ Req ID   │→│ Logging  │→│ GZip   │→│ CORS │           │
    │  └──────────┘ └──────────┘ └────────┘ └──────┘           │
    │                                                          │
    │  Routes (/api/clubs/{club_id}/...):                      │
    │  ┌─────────────┐ ┌──────────────┐ ┌───────────────┐      │
    │  │ suggestions │ │ voting/*     │ │ complete-book │      │
    │  │ .../vote    │ │              │ │ GET /health   │      │
    │  └─────────────┘ └──────────────┘ └───────────────┘      │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌──────────────────────────────────────────────────┐    │
    │  │ ClubShelfError → its status_code / error_code    │    │
    │  │ RequestValidationError → 400 │ Exception → 500   │    │
    │  └──────────────────────────────────────────────────┘    │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, ready banner
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.database import dispose_engine
from app.exceptions import ClubShelfError
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import clubs, health, suggestions, voting

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Shared with the expiry sweep job, so cron output and API output look
    the same in the log aggregator.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("ClubShelf Voting Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so /health can report; token checks will still fail closed
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info(
        "Voting windows: default %sh, max %sh; %d suggestion(s) per member per cycle",
        settings.voting_default_duration_hours,
        settings.voting_max_duration_hours,
        settings.max_suggestions_per_member,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("ClubShelf Voting Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Every domain failure is a ClubShelfError carrying its own status_code
    and error_code, so one handler covers the whole hierarchy:

        NotAuthenticatedError   → 401 not_authenticated
        NotAuthorizedError      → 403 not_authorized / not_a_member
        ValidationError         → 400 validation_error
        NotFoundError           → 404 club_not_found, suggestion_not_found, ...
        ConflictError           → 409 cycle_not_open, already_voted, ...
        StoreError              → 500 store_error (generic message)
        StoreConflictError      → 503 store_conflict (generic message)
        Exception (fallback)    → 500 internal_server_error

    Security: 5xx bodies never carry exception details; the context dict
    is logged server-side only.
    """

    @app.exception_handler(ClubShelfError)
    async def handle_clubshelf_error(request: Request, exc: ClubShelfError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s", rid, exc.error_code, exc.message, exc.context
            )
            message = GENERIC_SERVER_MESSAGE
        else:
            logger.info("[%s] %s: %s", rid, exc.error_code, exc.message)
            message = exc.message

        headers = {"Retry-After": "1"} if exc.status_code == 503 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": message,
                "request_id": rid,
            },
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Malformed body or path parameter. Same 400 shape as service-level validation."""
        rid = request_id_var.get("")
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg")
        else:
            message = "Invalid request"
        logger.info("[%s] Request validation failed: %s", rid, message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": message,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests build their own instance and override `get_db_session`.
    """
    app = FastAPI(
        title="ClubShelf Voting API",
        description=(
            "Book club suggestion voting: members propose books during a timed "
            "voting cycle, vote on them, and admins close the cycle and pick "
            "the club's next book."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(suggestions.router)
    app.include_router(voting.router)
    app.include_router(clubs.router)
    app.include_router(health.router)

    return app


app = create_app()
