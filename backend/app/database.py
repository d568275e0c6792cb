"""
LocalSpots Backend - Database Session Management
==================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
    pool_timeout:      Wait for a free connection before giving up; the
                       resulting sqlalchemy TimeoutError is reported to
                       clients as "store unavailable"

    SQLite (aiosqlite) does not take the sizing arguments, so they are only
    passed for server databases.
"""

import asyncio
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.exceptions import DatabaseError, LocalSpotsError, StoreUnavailableError


def build_engine_kwargs() -> Dict[str, Any]:
    """Engine options for the configured database URL."""
    kwargs: Dict[str, Any] = {
        # Echo SQL only in DEBUG mode
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=3600,
        )
    return kwargs


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **build_engine_kwargs())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit, outside
# the session context (responses are serialized after the commit)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    that Alembic reads for migrations.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/spots/{spot_id}")
        async def get_spot(spot_id: int, db: AsyncSession = Depends(get_db_session)):
            return await spot_service.get(db, spot_id)

    Raises:
        Any database exceptions are propagated to the global error handler.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            # Roll back on any failure, including errors raised after the
            # last query (e.g. during response building)
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Connectivity Errors ───────────────────────────────────────────────────
# Failures that mean "the store cannot be reached right now" as opposed to
# "the query is wrong". Services translate these into StoreUnavailableError
# (503); the startup capability check retries on them.
CONNECTIVITY_ERRORS = (
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,  # pool checkout timeout
    asyncio.TimeoutError,
    OSError,  # includes ConnectionError and TimeoutError
)

# OperationalError also covers schema problems ("no such table") and lock
# or permission errors, so it only counts when the driver says so.
CONNECTION_SQLSTATE_PREFIXES = ("08", "57P01", "57P02", "57P03")
CONNECTION_MESSAGE_MARKERS = (
    "could not connect",
    "connection refused",
    "connection reset",
    "connection is closed",
    "connection was closed",
    "server closed the connection",
    "timeout expired",
    "timed out",
    "unable to open database file",
)


def _driver_error_is_connectivity(orig: Optional[BaseException]) -> bool:
    """Inspect the DBAPI error (and what it wraps) behind an OperationalError."""
    seen = 0
    while orig is not None and seen < 5:
        if isinstance(orig, (OSError, asyncio.TimeoutError)):
            return True
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if isinstance(sqlstate, str) and sqlstate.startswith(CONNECTION_SQLSTATE_PREFIXES):
            return True
        message = str(orig).lower()
        if any(marker in message for marker in CONNECTION_MESSAGE_MARKERS):
            return True
        orig = orig.__cause__
        seen += 1
    return False


def is_connectivity_error(error: BaseException) -> bool:
    """True when `error` means the database is unreachable or timed out."""
    if isinstance(error, CONNECTIVITY_ERRORS):
        return True
    if not isinstance(error, sa_exc.DBAPIError):
        return False
    # Dropped connections are flagged by the dialect's is_disconnect()
    if error.connection_invalidated:
        return True
    if isinstance(error, sa_exc.OperationalError):
        return _driver_error_is_connectivity(error.orig)
    return False


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()


def translate_store_error(
    error: BaseException,
    message: str,
    context: Optional[Dict[str, Any]] = None,
) -> LocalSpotsError:
    """
    Map a failure raised while talking to the database onto the API's
    exception hierarchy.

    Returns (does not raise) StoreUnavailableError for connectivity
    failures and DatabaseError with the generic `message` otherwise, so the
    caller can `raise ... from error`.
    """
    ctx = dict(context or {})
    ctx["error_type"] = type(error).__name__
    if is_connectivity_error(error):
        return StoreUnavailableError(context=ctx)
    return DatabaseError(message=message, context=ctx)
