"""
LocalSpots Backend - Spatial Capability Detection
===================================================

What:  Finds out once, at startup, whether the database offers PostGIS.
How:   Non-PostgreSQL dialects have no spatial extension. On PostgreSQL the
       detector reads pg_extension; the check is retried with exponential
       backoff on connectivity errors, because the API container usually
       starts before the database accepts connections.
Who:   Called from the application lifespan; the result decides which
       proximity backend is built (see proximity_service.build_proximity_search).

Failure policy:
    If the database is still unreachable after the last attempt, the
    detector reports "unavailable" and the service starts on the planar
    backend with a warning. Nearby queries will surface the outage
    themselves as StoreUnavailableError.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.database import is_connectivity_error

logger = logging.getLogger(__name__)

POSTGIS_VERSION_QUERY = text(
    "SELECT extversion FROM pg_extension WHERE extname = 'postgis'"
)


@dataclass(frozen=True)
class SpatialCapability:
    """
    Result of the startup check.

    Attributes:
        available: PostGIS is installed in the connected database
        dialect:   SQLAlchemy dialect name ("postgresql", "sqlite", ...)
        version:   PostGIS extension version when available
        error:     Exception type name when the check itself failed
    """

    available: bool
    dialect: str
    version: Optional[str] = None
    error: Optional[str] = None


class SpatialCapabilityDetector:
    """
    Checks the database behind `engine` for PostGIS.

    Args:
        engine: the application's async engine
        attempts: total check attempts before giving up
        min_wait / max_wait: exponential backoff bounds in seconds
    """

    def __init__(
        self,
        engine: AsyncEngine,
        attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.engine = engine
        self.attempts = attempts if attempts is not None else settings.startup_retry_attempts
        self.min_wait = min_wait if min_wait is not None else settings.startup_retry_min_wait
        self.max_wait = max_wait if max_wait is not None else settings.startup_retry_max_wait

    async def detect(self) -> SpatialCapability:
        dialect = self.engine.dialect.name
        if dialect != "postgresql":
            logger.info("Database dialect '%s' has no spatial extension", dialect)
            return SpatialCapability(available=False, dialect=dialect)

        try:
            version = await self._query_postgis_version()
        except Exception as e:
            if not is_connectivity_error(e):
                # Permission problems or broken catalogs are not transient
                logger.error("PostGIS check failed: %s", str(e), exc_info=True)
            else:
                logger.warning(
                    "PostGIS check gave up after %d attempts: %s", self.attempts, str(e)
                )
            return SpatialCapability(available=False, dialect=dialect, error=type(e).__name__)

        if version is None:
            logger.info("PostGIS extension is not installed in this database")
            return SpatialCapability(available=False, dialect=dialect)

        logger.info("PostGIS %s detected", version)
        return SpatialCapability(available=True, dialect=dialect, version=str(version))

    async def _query_postgis_version(self) -> Optional[str]:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(is_connectivity_error),
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(
                initial=self.min_wait,
                max=self.max_wait,
                jitter=1,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with self.engine.connect() as conn:
                    result = await conn.execute(POSTGIS_VERSION_QUERY)
                    return result.scalar_one_or_none()
        return None
