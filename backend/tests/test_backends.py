"""
LocalSpots Backend - Distance Backend Tests
=============================================

What:  Distance formulas and candidate queries of GeodesicBackend and
       PlanarBackend, plus backend selection at startup.
"""

import math

import pytest

from app.services.geodesic_backend import GeodesicBackend, haversine_km
from app.services.planar_backend import PlanarBackend
from app.services.proximity_base import (
    QueryPoint,
    longitude_window,
    normalize_longitude_delta,
)
from app.services.proximity_service import select_backend
from app.services.spatial_capability import SpatialCapability


def compiled_params(query):
    return query.compile().params


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_km(48.8566, 2.3522, 48.8566, 2.3522) == 0.0

    def test_one_degree_of_latitude(self):
        # 2 * pi * 6371.0088 / 360
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.195, abs=1e-3)

    def test_paris_to_london(self):
        assert haversine_km(48.8566, 2.3522, 51.5074, -0.1278) == pytest.approx(343.5, abs=1.0)

    def test_antipodal_points(self):
        half_circumference = math.pi * 6371.0088
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(half_circumference)

    def test_across_antimeridian(self):
        assert haversine_km(0.0, 179.9, 0.0, -179.9) == pytest.approx(22.239, abs=1e-3)


class TestPlanarBackend:

    def setup_method(self):
        self.backend = PlanarBackend()

    def test_distance_uses_fixed_scale_at_equator(self):
        point = QueryPoint(0.0, 0.0, radius_km=500.0)
        assert self.backend.distance_km(point, 1.0, 0.0) == pytest.approx(111.32)
        assert self.backend.distance_km(point, 0.0, 1.0) == pytest.approx(111.32)

    def test_longitude_shrinks_with_latitude(self):
        point = QueryPoint(60.0, 10.0, radius_km=500.0)
        # cos(60 deg) = 0.5
        assert self.backend.distance_km(point, 60.0, 11.0) == pytest.approx(55.66)

    def test_close_to_haversine_for_short_ranges(self):
        point = QueryPoint(48.8566, 2.3522, radius_km=10.0)
        planar = self.backend.distance_km(point, 48.9000, 2.4000)
        geodesic = haversine_km(48.8566, 2.3522, 48.9000, 2.4000)
        assert planar == pytest.approx(geodesic, rel=0.005)

    def test_contains_matches_distance(self):
        point = QueryPoint(0.0, 0.0, radius_km=111.32)
        assert self.backend.contains(point, 0.999, 0.0)
        assert not self.backend.contains(point, 1.001, 0.0)

    def test_longitude_difference_wraps(self):
        point = QueryPoint(0.0, 179.9, radius_km=50.0)
        assert self.backend.distance_km(point, 0.0, -179.9) == pytest.approx(0.2 * 111.32)
        assert self.backend.contains(point, 0.0, -179.9)

    def test_candidate_query_is_a_bounding_box(self):
        query = self.backend.candidate_query(QueryPoint(0.0, 0.0, radius_km=111.32))
        values = sorted(compiled_params(query).values())
        # Two latitude and two longitude bounds of about one degree, widened slightly
        assert len(values) == 4
        assert values[0] == pytest.approx(-1.0, abs=0.01)
        assert values[-1] == pytest.approx(1.0, abs=0.01)
        assert all(abs(v) >= 1.0 for v in values)

    def test_candidate_query_at_pole_has_no_longitude_bound(self):
        query = self.backend.candidate_query(QueryPoint(90.0, 0.0, radius_km=10.0))
        assert "longitude" not in str(query.whereclause)


class TestGeodesicBackend:

    def test_contains_uses_haversine(self):
        backend = GeodesicBackend()
        point = QueryPoint(0.0, 0.0, radius_km=111.2)
        assert backend.contains(point, 1.0, 0.0)
        assert not backend.contains(point, 1.001, 0.0)

    def test_postgis_candidate_query_uses_st_dwithin(self):
        backend = GeodesicBackend(use_postgis=True)
        query = backend.candidate_query(QueryPoint(48.8566, 2.3522, radius_km=2.0))

        assert "ST_DWithin" in str(query)
        params = compiled_params(query)
        assert params["origin_lat"] == 48.8566
        assert params["origin_lng"] == 2.3522
        assert params["radius_m"] == pytest.approx(2000.0 * 1.001)

    def test_bounding_box_contains_point_due_east(self):
        backend = GeodesicBackend()
        point = QueryPoint(60.0, 10.0, radius_km=100.0)
        query = backend.candidate_query(point)
        longitude_bounds = [v for v in compiled_params(query).values() if v < 30.0]

        # Point on the same parallel exactly radius_km away
        delta = point.radius_km / 6371.0088
        east = 10.0 + math.degrees(
            2 * math.asin(math.sin(delta / 2) / math.cos(math.radians(60.0)))
        )

        assert haversine_km(60.0, 10.0, 60.0, east) == pytest.approx(100.0)
        assert min(longitude_bounds) < 10.0 < east < max(longitude_bounds)

    def test_circle_over_pole_drops_longitude_bound(self):
        query = GeodesicBackend().candidate_query(QueryPoint(89.5, 0.0, radius_km=100.0))
        assert "longitude" not in str(query.whereclause)

    def test_radius_covering_the_globe_has_no_filter(self):
        query = GeodesicBackend().candidate_query(QueryPoint(0.0, 0.0, radius_km=25000.0))
        assert query.whereclause is None

    def test_describe_reports_prefilter(self):
        assert "postgis" in GeodesicBackend(use_postgis=True).describe()
        assert "bounding_box" in GeodesicBackend().describe()


class TestLongitudeHelpers:

    @pytest.mark.parametrize("delta,expected", [
        (0.0, 0.0),
        (190.0, -170.0),
        (-190.0, 170.0),
        (359.8, -0.2),
    ])
    def test_normalize_longitude_delta(self, delta, expected):
        assert normalize_longitude_delta(delta) == pytest.approx(expected)

    def test_window_inside_range(self):
        assert longitude_window(10.0, 2.0) == (8.0, 12.0)

    def test_window_crossing_antimeridian_is_dropped(self):
        assert longitude_window(179.5, 1.0) is None
        assert longitude_window(-179.5, 1.0) is None

    def test_window_covering_all_longitudes_is_dropped(self):
        assert longitude_window(0.0, 180.0) is None


class TestSelectBackend:

    POSTGIS = SpatialCapability(available=True, dialect="postgresql", version="3.4.2")
    NO_POSTGIS = SpatialCapability(available=False, dialect="sqlite")

    def test_auto_with_postgis_is_geodesic_with_prefilter(self):
        backend = select_backend(self.POSTGIS, "auto")
        assert isinstance(backend, GeodesicBackend)
        assert backend.use_postgis is True

    def test_auto_without_postgis_is_planar(self):
        assert isinstance(select_backend(self.NO_POSTGIS, "auto"), PlanarBackend)

    def test_forced_geodesic_without_postgis_uses_bounding_box(self):
        backend = select_backend(self.NO_POSTGIS, "geodesic")
        assert isinstance(backend, GeodesicBackend)
        assert backend.use_postgis is False

    def test_forced_planar_ignores_postgis(self):
        assert isinstance(select_backend(self.POSTGIS, "planar"), PlanarBackend)

    def test_unknown_preference(self):
        with pytest.raises(ValueError):
            select_backend(self.POSTGIS, "manhattan")
