"""
LocalSpots Backend - Nearby Search Against a Real Database
============================================================

What:  find_nearby() on both backends, run through real SQL on an in-memory
       SQLite database, returns exactly what an exhaustive scan of the table
       with the backend's own distance rule returns.
How:   The schema is created from the ORM metadata; spots are placed on
       rings around each origin at distances just inside and just outside
       the radius, including origins next to the antimeridian and a pole.
"""

import math

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Category, Spot
from app.services.geodesic_backend import GeodesicBackend
from app.services.planar_backend import PlanarBackend
from app.services.proximity_base import (
    EARTH_RADIUS_KM,
    QueryPoint,
    normalize_longitude_delta,
)
from app.services.proximity_service import ProximitySearch

ORIGINS = {
    "paris": QueryPoint(latitude=48.8566, longitude=2.3522, radius_km=5.0, limit=100),
    "antimeridian": QueryPoint(latitude=-16.5, longitude=179.98, radius_km=25.0, limit=100),
    "north_pole": QueryPoint(latitude=89.97, longitude=10.0, radius_km=15.0, limit=100),
}

# Fractions of the radius; 0.999 and 1.001 straddle the boundary of both
# backends (planar overstates distances by about 0.1%)
RING_FRACTIONS = (0.25, 0.998, 0.999, 0.9995, 1.0005, 1.001, 1.002, 1.5)
BEARINGS = range(0, 360, 30)


def destination(latitude, longitude, distance_km, bearing):
    """Point reached from (latitude, longitude) along a great circle."""
    d = distance_km / EARTH_RADIUS_KM
    phi1, lam1, theta = map(math.radians, (latitude, longitude, bearing))
    phi2 = math.asin(
        math.sin(phi1) * math.cos(d) + math.cos(phi1) * math.sin(d) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(d) * math.cos(phi1),
        math.cos(d) - math.sin(phi1) * math.sin(phi2),
    )
    return (
        round(math.degrees(phi2), 8),
        round(normalize_longitude_delta(math.degrees(lam2)), 8),
    )


def ring_spots(category_id):
    spots = []
    for label, origin in ORIGINS.items():
        for fraction in RING_FRACTIONS:
            for bearing in BEARINGS:
                latitude, longitude = destination(
                    origin.latitude, origin.longitude, origin.radius_km * fraction, bearing
                )
                spots.append(
                    Spot(
                        name=f"{label} {fraction} {bearing}",
                        address="Ring",
                        latitude=latitude,
                        longitude=longitude,
                        category_id=category_id,
                        # Every seventh spot is hidden from active-only searches
                        is_active=len(spots) % 7 != 0,
                    )
                )
    # Far away from every origin
    spots.append(
        Spot(name="Antipode", address="Far", latitude=-48.8566, longitude=-177.6478,
             category_id=category_id)
    )
    return spots


@pytest_asyncio.fixture
async def sqlite_session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        category = Category(name="Landmarks", slug="landmarks")
        session.add(category)
        await session.flush()
        session.add_all(ring_spots(category.id))
        await session.commit()
        yield session

    await engine.dispose()


async def exhaustive_scan(session, backend, point, active_only):
    """Every stored spot checked with the backend's exact rule, nearest first."""
    result = await session.execute(select(Spot))
    matches = []
    for spot in result.scalars().all():
        if active_only and not spot.is_active:
            continue
        latitude, longitude = float(spot.latitude), float(spot.longitude)
        if backend.contains(point, latitude, longitude):
            matches.append((backend.distance_km(point, latitude, longitude), spot.id))
    matches.sort()
    return [(spot_id, distance) for distance, spot_id in matches[: point.limit]]


class TestNearbyOnSqlite:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("backend", [PlanarBackend(), GeodesicBackend()], ids=str)
    @pytest.mark.parametrize("origin", sorted(ORIGINS))
    @pytest.mark.parametrize("active_only", [True, False])
    async def test_matches_exhaustive_scan(self, sqlite_session, backend, origin, active_only):
        point = ORIGINS[origin]
        search = ProximitySearch(backend)

        found = await search.find_nearby(sqlite_session, point, active_only=active_only)
        expected = await exhaustive_scan(sqlite_session, backend, point, active_only)

        assert expected
        assert [(n.spot.id, n.distance_km) for n in found] == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("backend", [PlanarBackend(), GeodesicBackend()], ids=str)
    async def test_limit_keeps_the_nearest(self, sqlite_session, backend):
        point = QueryPoint(latitude=48.8566, longitude=2.3522, radius_km=5.0, limit=3)
        search = ProximitySearch(backend)

        found = await search.find_nearby(sqlite_session, point, active_only=True)
        expected = await exhaustive_scan(sqlite_session, backend, point, True)

        assert len(found) == 3
        assert [(n.spot.id, n.distance_km) for n in found] == expected

    @pytest.mark.asyncio
    async def test_search_reaches_across_the_antimeridian(self, sqlite_session):
        search = ProximitySearch(GeodesicBackend())

        found = await search.find_nearby(
            sqlite_session, ORIGINS["antimeridian"], active_only=False
        )

        longitudes = [float(n.spot.longitude) for n in found]
        assert any(lng < 0 for lng in longitudes)
        assert any(lng > 0 for lng in longitudes)
        assert all(n.distance_km <= 25.0 for n in found)

    @pytest.mark.asyncio
    async def test_search_reaches_over_the_pole(self, sqlite_session):
        search = ProximitySearch(GeodesicBackend())

        found = await search.find_nearby(
            sqlite_session, ORIGINS["north_pole"], active_only=False
        )

        # Spots on the far side of the pole have longitudes near 10 - 180
        assert any(abs(normalize_longitude_delta(float(n.spot.longitude) - 10.0)) > 90
                   for n in found)
        assert all(n.distance_km <= 15.0 for n in found)
