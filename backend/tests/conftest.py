"""
LocalSpots Backend - Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the test suite.
How:   The environment is pointed at an in-memory SQLite database before
       any `app` module is imported, so no test needs PostgreSQL.

Fixtures (function-scoped):
    ├── mock_db_session: AsyncMock standing in for AsyncSession
    ├── spot_factory / category_factory / review_factory: transient ORM instances
    ├── scalars_result: fake Result whose .scalars().all() returns rows
    ├── proximity_search: ProximitySearch on the planar backend
    └── api_client: HTTPX AsyncClient with the session and proximity
                    search dependencies overridden
"""

import os

# Must happen before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SPATIAL_BACKEND"] = "auto"

from datetime import datetime, timezone
from itertools import count
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.models import Category, Review, Spot
from app.services.planar_backend import PlanarBackend
from app.services.proximity_service import ProximitySearch
from app.services.spatial_capability import SpatialCapability


@pytest.fixture
def mock_db_session():
    """
    A mock async database session.

    Usage:
        mock_db_session.execute.return_value = scalars_result([spot])
        mock_db_session.get.return_value = spot
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def scalars_result():
    """Builds a fake Result for `await db.execute(select(...))`."""

    def build(rows):
        result = MagicMock()
        result.scalars.return_value.all.return_value = list(rows)
        return result

    return build


@pytest.fixture
def spot_factory():
    """
    Creates transient Spot instances (never flushed).

    Column defaults only apply on INSERT, so every field the response
    schemas read is set explicitly.
    """
    ids = count(1)

    def build(latitude, longitude, **overrides):
        values = {
            "id": next(ids),
            "name": "Test Spot",
            "description": None,
            "address": "1 Test Street, Paris",
            "latitude": latitude,
            "longitude": longitude,
            "category_id": 1,
            "user_id": None,
            "tags": None,
            "is_active": True,
            "is_verified": False,
            "created_at": datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
            "updated_at": None,
        }
        values.update(overrides)
        return Spot(**values)

    return build


@pytest.fixture
def category_factory():
    def build(category_id=1, name="Cafes", slug="cafes", **overrides):
        values = {
            "id": category_id,
            "name": name,
            "slug": slug,
            "description": None,
            "icon": None,
            "color": None,
            "is_active": True,
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "updated_at": None,
        }
        values.update(overrides)
        return Category(**values)

    return build


@pytest.fixture
def review_factory():
    ids = count(1)

    def build(spot_id=1, user_id=7, rating=4, **overrides):
        values = {
            "id": next(ids),
            "spot_id": spot_id,
            "user_id": user_id,
            "rating": rating,
            "comment": None,
            "is_active": True,
            "created_at": datetime(2025, 2, 1, 9, 30, tzinfo=timezone.utc),
            "updated_at": None,
        }
        values.update(overrides)
        return Review(**values)

    return build


@pytest.fixture
def proximity_search():
    return ProximitySearch(PlanarBackend())


@pytest_asyncio.fixture
async def api_client(mock_db_session, proximity_search):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    ASGITransport does not run the lifespan, so the startup state the
    routes read (proximity search, spatial capability) is set here.
    """
    from app.database import get_db_session
    from app.dependencies import get_proximity_search
    from app.main import app

    async def override_db_session():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_proximity_search] = lambda: proximity_search
    app.state.proximity_search = proximity_search
    app.state.spatial_capability = SpatialCapability(available=False, dialect="sqlite")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    del app.state.proximity_search
    del app.state.spatial_capability
