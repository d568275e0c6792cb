"""
LocalSpots Backend - FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan handler configures logging and selects the proximity
       backend once, before the first request is served.
Who:   uvicorn app.main:app

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware:  Request ID → Logging → GZip → CORS        │
    │                                                         │
    │  Routes:                                                │
    │  ┌────────────────┐ ┌─────────────────┐ ┌────────────┐  │
    │  │ /api/v1/spots  │ │/api/v1/categories│ │  /health   │  │
    │  └────────────────┘ └─────────────────┘ └────────────┘  │
    │  ┌──────────────────────────────────────────────────┐   │
    │  │ /api/v1/spots/{id}/reviews, /api/v1/reviews      │   │
    │  └──────────────────────────────────────────────────┘   │
    │                                                         │
    │  Exception Handlers:                                    │
    │  Validation→400 │ NotFound→404 │ Conflict→409 │         │
    │  StoreUnavailable→503 │ Database→500                    │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Check the database for PostGIS (retried with backoff); skipped
       when SPATIAL_BACKEND=planar
    3. Build the ProximitySearch for the detected capability and the
       SPATIAL_BACKEND setting; keep it on app.state

    Shutdown:
    1. Dispose the database engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.database import dispose_engine, engine
from app.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidQueryError,
    LocalSpotsError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import categories, health, reviews, spots
from app.services.proximity_service import build_proximity_search
from app.services.spatial_capability import SpatialCapability, SpatialCapabilityDetector

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2024-01-15T12:00:00 [INFO] app.services.proximity_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],  # Docker captures stdout
        force=True,
    )

    # Third-party loggers that are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def resolve_spatial_capability(preference: str) -> SpatialCapability:
    """
    Check for PostGIS unless the planar backend is forced; planar never
    uses the extension, so startup does not wait on the database.
    """
    if preference == "planar":
        logger.info("SPATIAL_BACKEND=planar: skipping the PostGIS check")
        return SpatialCapability(available=False, dialect=engine.dialect.name)
    return await SpatialCapabilityDetector(engine).detect()


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup selects the proximity backend; shutdown releases the pool.

    The capability check never raises: if the database stays unreachable
    the service starts on the planar backend and /health reports it.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("LocalSpots Backend %s starting up...", __version__)

    capability = await resolve_spatial_capability(settings.spatial_backend)
    app.state.spatial_capability = capability
    app.state.proximity_search = build_proximity_search(
        capability, settings.spatial_backend
    )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("LocalSpots Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(error: str, exc: LocalSpotsError, include_details: bool = True) -> dict:
    content = {
        "error": error,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if include_details and exc.context:
        content["details"] = exc.context
    return content


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the application exceptions to HTTP responses.

    Handler hierarchy:
        InvalidQueryError       → 400 "invalid_query"
        ValidationError         → 400 "validation_error"
        NotFoundError           → 404 "not_found"
        ConflictError           → 409 "conflict"
        StoreUnavailableError   → 503 "service_unavailable" + Retry-After
        DatabaseError           → 500 "server_error"
        LocalSpotsError (base)  → 500 "server_error"
        Exception (fallback)    → 500 "internal_server_error"

    Only 4xx responses include `details`; server-side failures are logged
    with their context and answered with a generic message.
    """

    @app.exception_handler(InvalidQueryError)
    async def handle_invalid_query(request: Request, exc: InvalidQueryError):
        logger.warning("[%s] Invalid nearby query: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=400, content=error_body("invalid_query", exc))

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=400, content=error_body("validation_error", exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body("not_found", exc))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content=error_body("conflict", exc))

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError):
        rid = request_id_var.get("")
        logger.error("[%s] Store unavailable: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=503,
            content={
                "error": "service_unavailable",
                "message": exc.message,
                "details": {"retry_after": exc.retry_after},
                "request_id": rid,
            },
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        # Context is logged here and never returned
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(LocalSpotsError)
    async def handle_application_error(request: Request, exc: LocalSpotsError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={"error": "server_error", "message": exc.message, "request_id": rid},
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
    """Assemble middleware, exception handlers and routers."""
    app = FastAPI(
        title="LocalSpots API",
        description=(
            "Discover points of interest: spots, categories and a radius search "
            "that returns the nearest spots first."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Execution order is the reverse of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(spots.router)
    app.include_router(reviews.router)
    app.include_router(categories.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
