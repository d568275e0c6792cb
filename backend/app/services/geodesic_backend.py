"""
LocalSpots Backend - Geodesic Proximity Backend
=================================================

What:  Great-circle distances (haversine on the mean Earth sphere).
How:   With PostGIS, the candidate rows come from ST_DWithin on the
       geography cast of (longitude, latitude), which uses the GiST
       expression index created by migration 004. Without PostGIS (the
       geodesic backend forced by SPATIAL_BACKEND=geodesic on SQLite),
       a latitude/longitude bounding box on idx_spots_lat_lng is used.
       Either way the final radius test and the reported distance are the
       Python haversine below, so both prefilters return identical results.

Distance semantics:
    PostGIS computes geography distances on the spheroid by default; the
    prefilter passes use_spheroid => false so it measures on the same
    sphere (radius 6371.0088 km) as haversine(). The SQL radius is widened
    by PREFILTER_TOLERANCE so a spot right on the boundary is never lost
    to rounding before the exact check.
"""

import logging
import math

from sqlalchemy import Select, select, text

from app.models import Spot
from app.services.proximity_base import (
    EARTH_RADIUS_KM,
    PREFILTER_TOLERANCE,
    ProximityBackend,
    QueryPoint,
    bounding_box_query,
)

logger = logging.getLogger(__name__)

# Both sides are cast to geography; the spot side must match the index
# expression in alembic/versions/003_enable_postgis.py
ST_DWITHIN_CLAUSE = (
    "ST_DWithin("
    "ST_MakePoint(spots.longitude, spots.latitude)::geography, "
    "ST_MakePoint(:origin_lng, :origin_lat)::geography, "
    ":radius_m, false)"
)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometers between two points (haversine formula)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Clamp: rounding can push h a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


class GeodesicBackend(ProximityBackend):
    """
    Haversine distance backend.

    Args:
        use_postgis: build the candidate query with ST_DWithin. Only valid
                     when the spatial capability check found PostGIS.
    """

    name = "geodesic"

    def __init__(self, use_postgis: bool = False):
        self.use_postgis = use_postgis

    def candidate_query(self, point: QueryPoint) -> Select:
        if self.use_postgis:
            clause = text(ST_DWITHIN_CLAUSE).bindparams(
                origin_lng=point.longitude,
                origin_lat=point.latitude,
                radius_m=point.radius_km * 1000.0 * PREFILTER_TOLERANCE,
            )
            return select(Spot).where(clause)

        angular = point.radius_km / EARTH_RADIUS_KM
        if angular >= math.pi:
            # The radius covers the whole sphere
            return select(Spot)

        lat_delta = math.degrees(angular)
        lng_delta = None
        cos_lat = math.cos(math.radians(point.latitude))
        # No longitude bound when the circle reaches a pole
        if angular < math.pi / 2 and math.sin(angular) < cos_lat:
            lng_delta = math.degrees(math.asin(math.sin(angular) / cos_lat))
        return bounding_box_query(point, lat_delta, lng_delta)

    def contains(self, point: QueryPoint, latitude: float, longitude: float) -> bool:
        return self.distance_km(point, latitude, longitude) <= point.radius_km

    def distance_km(self, point: QueryPoint, latitude: float, longitude: float) -> float:
        return haversine_km(point.latitude, point.longitude, latitude, longitude)

    def describe(self) -> str:
        return f"{self.name}, prefilter={'postgis' if self.use_postgis else 'bounding_box'}"
