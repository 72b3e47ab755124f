"""
MealTracker Backend - FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers, routes and the
       DurableStore; the lifespan builds the store from settings and closes it.
Who:   uvicorn (uvicorn mealtracker.main:app) and the test suite (create_app(store=...)).

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │  Middleware:  RequestID → Logging → GZip → CORS      │
    │  Routes:      /api/restaurants  /api/sections        │
    │               /api/meals        /health              │
    │  Handlers:    Validation→400  Query→400  Integrity→409│
    │               NotFound→404   other→500               │
    └─────────────────────────┬────────────────────────────┘
                              │ Depends(get_store)
                     ┌────────▼────────┐
                     │  DurableStore   │ → local file / GitHub contents API
                     └─────────────────┘

Lifecycle:
    Startup:   logging, configuration check, DurableStore from settings
               (the image itself is acquired lazily on the first request)
    Shutdown:  close the store (database connection + httpx client)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from mealtracker import __version__
from mealtracker.config import settings
from mealtracker.exceptions import (
    IntegrityViolationError,
    MealTrackerError,
    NotFoundError,
    QueryError,
    ValidationError,
)
from mealtracker.middleware.logging import RequestLoggingMiddleware
from mealtracker.middleware.request_id import RequestIDMiddleware, request_id_var
from mealtracker.routes import PERSISTENCE_HEADER, health, meals, restaurants, sections
from mealtracker.storage import DurableStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: 2024-01-15T12:00:00 [INFO] mealtracker.storage.manager: Database ready ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("MealTracker Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: reads fall back to a bootstrapped image and writes
        # report local_only until the configuration is fixed
        logger.error("Configuration error: %s", str(e))

    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        app.state.store = DurableStore.from_settings(settings)
    store: DurableStore = app.state.store
    logger.info("Persistence mode: %s", store.mode)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("MealTracker Backend shutting down...")
    if owns_store:
        await store.close()
        app.state.store = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, details: Optional[dict] = None):
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and the ErrorResponse body.

        ValidationError          → 400
        QueryError               → 400
        IntegrityViolationError  → 409
        NotFoundError            → 404
        MealTrackerError (base)  → 500
        Exception (fallback)     → 500

    SQL text and other context stay in the server log; only ValidationError
    returns its context (the offending field) to the client.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(IntegrityViolationError)
    async def handle_integrity_violation(request: Request, exc: IntegrityViolationError):
        logger.warning(
            "[%s] Constraint violation: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(409, "conflict", "The change conflicts with existing data.")

    @app.exception_handler(QueryError)
    async def handle_query_error(request: Request, exc: QueryError):
        logger.warning(
            "[%s] Query error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error_response(400, "query_error", exc.message)

    @app.exception_handler(MealTrackerError)
    async def handle_application_error(request: Request, exc: MealTrackerError):
        logger.error(
            "[%s] Application error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True
        )
        return _error_response(
            500, "internal_server_error", "An unexpected error occurred. Please try again."
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(store: Optional[DurableStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store:  pre-built DurableStore (tests). When omitted the lifespan builds
                one from settings and closes it on shutdown.
    """
    app = FastAPI(
        title="MealTracker API",
        description=(
            "Track restaurants, their menu sections and the meals you have tried. "
            "Data lives in an embedded SQLite image persisted locally or to GitHub."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.store = store

    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", PERSISTENCE_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(restaurants.router)
    app.include_router(sections.router)
    app.include_router(meals.router)
    app.include_router(health.router)

    return app


app = create_app()
