"""
ScanAlert Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn scanalert.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐ ┌──────────────┐  │
    │  │  Req ID  │→│  Logging        │→│  CORS        │  │
    │  └──────────┘ └─────────────────┘ └──────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────────────┐ ┌─────────┐  │
    │  │ POST /scan   │ │ GET /scan-history│ │ GET /   │  │
    │  └──────────────┘ └──────────────────┘ │ /health │  │
    │                                        └─────────┘  │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ Validation→400 │ NotFound→404 │ SMS/DB→500    │  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (missing Twilio credentials are logged)
    3. Verify the database is reachable (fatal if not)

    Shutdown:
    1. Close the Twilio HTTP client
    2. Dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scanalert import __version__
from scanalert.config import settings
from scanalert.database import check_connection, dispose_engine
from scanalert.exceptions import (
    NotFoundError,
    NotificationError,
    PersistenceError,
    ScanAlertError,
    ValidationError,
    unexpected_error_body,
)
from scanalert.middleware.logging import RequestLoggingMiddleware
from scanalert.middleware.request_id import RequestIDMiddleware, request_id_var
from scanalert.routes import health, scan
from scanalert.services.twilio_service import sms_sender

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup sequence:
        1. Setup logging
        2. Validate SMS configuration (logged, not fatal: scans are still
           recorded and report "Failed to send SMS")
        3. Verify database connectivity (fatal: the service must not accept
           scans it cannot record)

    Shutdown sequence:
        1. Close the SMS gateway client
        2. Dispose database engine
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("ScanAlert Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("SMS alerts will fail until the configuration is fixed.")

    try:
        await check_connection()
    except Exception as e:
        logger.critical("Database connection failed: %s", str(e))
        await dispose_engine()
        raise RuntimeError("Cannot start without a reachable database") from e
    logger.info("Database connected")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("ScanAlert Backend shutting down...")
    await sms_sender.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError         → 400 {"error": "Missing regNumber"}
        NotFoundError           → 404 {"error": "Student not found"}
        NotificationError       → 500 {"error": "Failed to send SMS", "details": ...}
        PersistenceError        → 500 {"error": ..., "details"?: ...}
        ScanAlertError (base)   → 500
        Exception (fallback)    → 500 {"error": "Internal Server Error", "details": ...}
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=400, content=exc.to_body())

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        logger.warning("[%s] Not found: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=404, content=exc.to_body())

    @app.exception_handler(NotificationError)
    async def handle_notification_error(request: Request, exc: NotificationError):
        """The scan is recorded; only the parent alert failed."""
        rid = request_id_var.get("")
        logger.error(
            "[%s] Notification error: %s | Context: %s", rid, exc.details, exc.context
        )
        return JSONResponse(status_code=500, content=exc.to_body())

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError):
        rid = request_id_var.get("")
        logger.error("[%s] Persistence error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=exc.to_body())

    @app.exception_handler(ScanAlertError)
    async def handle_app_error(request: Request, exc: ScanAlertError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=exc.to_body())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Last resort for errors raised by the middleware themselves.

        Errors from routes are answered by RequestLoggingMiddleware with the
        same body, inside the chain, so they keep their X-Request-ID.
        """
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=unexpected_error_body(exc))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Middleware executes in REVERSE order of addition:
    added CORS → Logging → RequestID, so requests pass
    RequestID → Logging → CORS → route.
    """
    app = FastAPI(
        title="ScanAlert API",
        description=(
            "Records barcode scans of student ID cards and alerts the parent by SMS. "
            "Every accepted scan is stored, even when the SMS cannot be delivered."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(scan.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scanalert.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
    )
