"""
LocalSpots Backend - Planar Proximity Backend
===============================================

What:  Distance approximation for stores without a spatial extension.
How:   Equirectangular projection around the query point:

           dy = Δlatitude
           dx = Δlongitude · cos(query latitude)     (Δlongitude wrapped to ±180)
           distance_km = KM_PER_DEGREE · sqrt(dx² + dy²)

       KM_PER_DEGREE is fixed at 111.32 km (one degree at the equator).

Radius filter:
    contains() compares dx² + dy² with (radius_km / KM_PER_DEGREE)², which
    needs no square root. The root is only taken for the reported distance;
    since squaring is monotonic on non-negative values the sort order is the
    same either way.

Accuracy:
    The fixed scale overstates spherical distances by about 0.1% (the mean
    sphere has 111.195 km per degree). The cos(latitude) factor is taken at
    the query point only, so the relative error grows with the north-south
    extent of the search: it stays well below 1% for radii of a few tens of
    kilometers outside polar regions, and is unbounded near the poles and
    for continental radii.
"""

import math

from sqlalchemy import Select

from app.services.proximity_base import (
    KM_PER_DEGREE,
    ProximityBackend,
    QueryPoint,
    bounding_box_query,
    normalize_longitude_delta,
)

# Below this, cos(latitude) is treated as zero: at the poles every
# longitude is the same point
_MIN_COS_LATITUDE = 1e-12


class PlanarBackend(ProximityBackend):
    """Equirectangular approximation with a constant degree-to-km scale."""

    name = "planar"

    def __init__(self, km_per_degree: float = KM_PER_DEGREE):
        self.km_per_degree = km_per_degree

    def _radius_degrees(self, point: QueryPoint) -> float:
        return point.radius_km / self.km_per_degree

    def _squared_offset(self, point: QueryPoint, latitude: float, longitude: float) -> float:
        dy = latitude - point.latitude
        dx = normalize_longitude_delta(longitude - point.longitude) * math.cos(
            math.radians(point.latitude)
        )
        return dx * dx + dy * dy

    def candidate_query(self, point: QueryPoint) -> Select:
        radius_deg = self._radius_degrees(point)
        cos_lat = math.cos(math.radians(point.latitude))
        lng_delta = radius_deg / cos_lat if cos_lat > _MIN_COS_LATITUDE else None
        return bounding_box_query(point, radius_deg, lng_delta)

    def contains(self, point: QueryPoint, latitude: float, longitude: float) -> bool:
        radius_deg = self._radius_degrees(point)
        return self._squared_offset(point, latitude, longitude) <= radius_deg * radius_deg

    def distance_km(self, point: QueryPoint, latitude: float, longitude: float) -> float:
        return self.km_per_degree * math.sqrt(self._squared_offset(point, latitude, longitude))
