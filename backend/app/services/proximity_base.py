"""
LocalSpots Backend - Abstract Proximity Backend Interface
===========================================================

What:  Value types of the nearby search and the contract every distance
       backend implements.
How:   Concrete backends (GeodesicBackend, PlanarBackend) inherit from
       ProximityBackend. ProximitySearch holds exactly one of them, chosen
       at startup from the detected spatial capability.
Who:   Used by ProximitySearch; the backends never touch the session.

Backend contract:
    candidate_query(point)  → SELECT over spots that is a superset of the
                              rows within the radius (index friendly)
    contains(point, lat, lng) → exact radius predicate of this backend
    distance_km(point, lat, lng) → reported distance, also the sort key

    ProximitySearch runs the query, skips malformed rows, applies
    contains(), sorts by (distance_km, id) and truncates to the limit, so
    ordering and limit semantics are identical for every backend.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import Select, select

from app.models import Spot

# Mean Earth radius (IUGG), the sphere PostGIS uses for geography
# distances with use_spheroid => false
EARTH_RADIUS_KM = 6371.0088

# Kilometers per degree at the equator, the fixed scale of the planar
# approximation
KM_PER_DEGREE = 111.32

# Bounding boxes are widened by this factor so that rounding in SQL never
# drops a row the exact predicate would accept
PREFILTER_TOLERANCE = 1.001

DEFAULT_LIMIT = 20


@dataclass(frozen=True)
class QueryPoint:
    """
    Origin and bounds of a nearby search.

    Attributes:
        latitude, longitude: decimal degrees, [-90, 90] x [-180, 180]
        radius_km: search radius in kilometers, > 0
        limit: maximum number of spots returned, > 0
    """

    latitude: float
    longitude: float
    radius_km: float
    limit: int = DEFAULT_LIMIT


@dataclass(frozen=True)
class NearbySpot:
    """A spot within the radius and its distance from the query point."""

    spot: Spot
    distance_km: float


def normalize_longitude_delta(delta: float) -> float:
    """Maps a longitude difference into [-180, 180)."""
    return (delta + 180.0) % 360.0 - 180.0


def longitude_window(longitude: float, delta: float) -> Optional[Tuple[float, float]]:
    """
    Longitude range [longitude - delta, longitude + delta] for a prefilter.

    Returns None when the window crosses the antimeridian or covers every
    longitude; callers then skip the longitude condition.
    """
    if delta >= 180.0:
        return None
    low, high = longitude - delta, longitude + delta
    if low < -180.0 or high > 180.0:
        return None
    return low, high


def bounding_box_query(
    point: QueryPoint,
    lat_delta: float,
    lng_delta: Optional[float],
) -> Select:
    """SELECT spots inside a latitude/longitude box around the point."""
    lat_delta *= PREFILTER_TOLERANCE
    query = select(Spot).where(
        Spot.latitude >= max(-90.0, point.latitude - lat_delta),
        Spot.latitude <= min(90.0, point.latitude + lat_delta),
    )
    if lng_delta is not None:
        window = longitude_window(point.longitude, lng_delta * PREFILTER_TOLERANCE)
        if window is not None:
            query = query.where(Spot.longitude >= window[0], Spot.longitude <= window[1])
    return query


class ProximityBackend(ABC):
    """
    Abstract distance strategy for the nearby search.

    Implementations:
        - GeodesicBackend: haversine great-circle distance, PostGIS prefilter
        - PlanarBackend: equirectangular approximation with a fixed scale
    """

    #: Short name reported by the API and the health endpoint
    name: str = "abstract"

    @abstractmethod
    def candidate_query(self, point: QueryPoint) -> Select:
        """
        Build the prefilter SELECT for this point.

        The result must contain every stored spot that contains() would
        accept; extra rows are allowed and are discarded later.
        """
        ...

    @abstractmethod
    def contains(self, point: QueryPoint, latitude: float, longitude: float) -> bool:
        """Whether a spot at (latitude, longitude) is inside the radius."""
        ...

    @abstractmethod
    def distance_km(self, point: QueryPoint, latitude: float, longitude: float) -> float:
        """Distance in kilometers from the query point, as this backend measures it."""
        ...

    def describe(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.describe()})>"


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Finite and inside [-90, 90] x [-180, 180]."""
    return (
        math.isfinite(latitude)
        and math.isfinite(longitude)
        and -90.0 <= latitude <= 90.0
        and -180.0 <= longitude <= 180.0
    )
