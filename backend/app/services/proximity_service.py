"""
LocalSpots Backend - Proximity Search
=======================================

What:  Finds the spots within a radius of a point, nearest first.
How:   Validates the query point, runs the backend's candidate query,
       skips rows with unusable coordinates, applies the backend's exact
       radius predicate, sorts by (distance, id) and truncates to the limit.
Who:   Called by GET /api/v1/spots/nearby through the `get_proximity_search`
       dependency.
When:  One independent, read-only invocation per request.

Flow:
    ┌────────────┐   ┌──────────────┐   ┌──────────────┐   ┌────────────┐
    │  Validate  │──▶│  Candidate   │──▶│ Skip bad rows│──▶│ Sort+limit │
    │ QueryPoint │   │  query (DB)  │   │  + contains  │   │ (dist, id) │
    └────────────┘   └──────────────┘   └──────────────┘   └────────────┘

Backend selection:
    build_proximity_search() is called once by the application lifespan
    with the SpatialCapability detected at startup; the resulting instance
    is kept on app.state for the lifetime of the process.

Error policy:
    - Invalid input raises InvalidQueryError before the session is touched
    - Connectivity failures raise StoreUnavailableError (not retried here)
    - Any other SQLAlchemy failure raises DatabaseError
    - A malformed row is logged and skipped; other rows are unaffected
"""

import logging
import math
import numbers
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import is_connectivity_error, translate_store_error
from app.exceptions import InvalidQueryError, LocalSpotsError
from app.models import Spot
from app.services.geodesic_backend import GeodesicBackend
from app.services.planar_backend import PlanarBackend
from app.services.proximity_base import (
    NearbySpot,
    ProximityBackend,
    QueryPoint,
    is_valid_coordinate,
)
from app.services.spatial_capability import SpatialCapability

logger = logging.getLogger(__name__)


def validate_query_point(point: QueryPoint) -> None:
    """
    Check a query point before any datastore access.

    Raises:
        InvalidQueryError: missing or out-of-range coordinates, a radius
            that is not a finite positive number, or a limit that is not a
            positive integer.
    """
    if point.latitude is None or point.longitude is None:
        raise InvalidQueryError(
            message="Latitude and longitude are both required",
            field="latitude" if point.latitude is None else "longitude",
        )

    for field, value, bound in (
        ("latitude", point.latitude, 90.0),
        ("longitude", point.longitude, 180.0),
    ):
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise InvalidQueryError(message=f"{field} must be a number", field=field)
        if not math.isfinite(value) or not -bound <= value <= bound:
            raise InvalidQueryError(
                message=f"{field} must be between {-bound:g} and {bound:g}",
                field=field,
                context={"value": value if math.isfinite(value) else str(value)},
            )

    radius = point.radius_km
    if (
        isinstance(radius, bool)
        or not isinstance(radius, numbers.Real)
        or not math.isfinite(radius)
        or radius <= 0
    ):
        raise InvalidQueryError(
            message="radius_km must be a finite number greater than 0",
            field="radius_km",
        )

    limit = point.limit
    if isinstance(limit, bool) or not isinstance(limit, numbers.Integral) or limit <= 0:
        raise InvalidQueryError(
            message="limit must be a positive integer",
            field="limit",
        )


def stored_coordinates(spot: Spot) -> Optional[Tuple[float, float]]:
    """(latitude, longitude) of a row as floats, or None when unusable."""
    try:
        latitude = float(spot.latitude)
        longitude = float(spot.longitude)
    except (TypeError, ValueError):
        return None
    if not is_valid_coordinate(latitude, longitude):
        return None
    return latitude, longitude


class ProximitySearch:
    """
    Radius search over spots with a fixed distance backend.

    Stateless apart from the backend reference, so a single instance is
    shared by all concurrent requests.
    """

    def __init__(self, backend: ProximityBackend):
        self.backend = backend

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def find_nearby(
        self,
        db: AsyncSession,
        point: QueryPoint,
        *,
        active_only: bool,
        category_id: Optional[int] = None,
    ) -> List[NearbySpot]:
        """
        Spots within `point.radius_km` of the point, nearest first.

        Args:
            db: Async database session (read only)
            point: Query origin, radius and limit
            active_only: Exclude spots with is_active = false. Required so
                that the inactive-spot policy is always the caller's choice.
            category_id: Only consider spots of this category

        Returns:
            At most `point.limit` NearbySpot values, ordered by ascending
            distance and then ascending spot id.

        Raises:
            InvalidQueryError: Malformed point (no query is issued)
            StoreUnavailableError: Database unreachable or timed out
            DatabaseError: Any other database failure
        """
        validate_query_point(point)

        query = self.backend.candidate_query(point)
        if active_only:
            query = query.where(Spot.is_active.is_(True))
        if category_id is not None:
            query = query.where(Spot.category_id == category_id)

        try:
            result = await db.execute(query)
            candidates = list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise self._translate_store_error(e, point) from e

        matches: List[NearbySpot] = []
        skipped = 0
        for spot in candidates:
            coords = stored_coordinates(spot)
            if coords is None:
                skipped += 1
                logger.warning(
                    "Skipping spot %s with unusable coordinates (%r, %r)",
                    getattr(spot, "id", "?"),
                    getattr(spot, "latitude", None),
                    getattr(spot, "longitude", None),
                )
                continue
            latitude, longitude = coords
            if not self.backend.contains(point, latitude, longitude):
                continue
            matches.append(
                NearbySpot(
                    spot=spot,
                    distance_km=self.backend.distance_km(point, latitude, longitude),
                )
            )

        matches.sort(key=lambda m: (m.distance_km, m.spot.id))
        nearest = matches[: point.limit]

        logger.debug(
            "Nearby (%.6f, %.6f) r=%.3fkm via %s: %d candidates, %d in radius, "
            "%d skipped, %d returned",
            point.latitude,
            point.longitude,
            point.radius_km,
            self.backend.name,
            len(candidates),
            len(matches),
            skipped,
            len(nearest),
        )
        return nearest

    def _translate_store_error(self, error: Exception, point: QueryPoint) -> LocalSpotsError:
        if is_connectivity_error(error):
            logger.error("Spot store unavailable during nearby search: %s", str(error))
        else:
            logger.error(
                "Database error during nearby search at (%s, %s): %s",
                point.latitude,
                point.longitude,
                str(error),
                exc_info=True,
            )
        return translate_store_error(
            error,
            "Could not search nearby spots. Please try again.",
            context={"backend": self.backend.name},
        )


def select_backend(capability: SpatialCapability, preference: str = "auto") -> ProximityBackend:
    """
    Backend for the detected capability and the configured preference.

        preference   PostGIS   backend
        ──────────   ───────   ──────────────────────────────────
        auto         yes       GeodesicBackend(use_postgis=True)
        auto         no        PlanarBackend
        geodesic     yes/no    GeodesicBackend(use_postgis=<detected>)
        planar       -         PlanarBackend
    """
    if preference == "planar":
        return PlanarBackend()
    if preference == "geodesic":
        return GeodesicBackend(use_postgis=capability.available)
    if preference != "auto":
        raise ValueError(f"Unknown spatial backend preference '{preference}'")
    if capability.available:
        return GeodesicBackend(use_postgis=True)
    return PlanarBackend()


def build_proximity_search(
    capability: SpatialCapability, preference: str = "auto"
) -> ProximitySearch:
    """Create the process-wide ProximitySearch; called once at startup."""
    backend = select_backend(capability, preference)
    logger.info(
        "Proximity search using %r (preference=%s, dialect=%s, postgis=%s)",
        backend,
        preference,
        capability.dialect,
        capability.version or "no",
    )
    return ProximitySearch(backend)
