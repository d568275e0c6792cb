"""
LocalSpots Backend - API Endpoint Tests
=========================================

What:  HTTP behavior of the spot, category, review and health routes.
How:   httpx AsyncClient over ASGITransport; the session and the proximity
       search are injected through dependency_overrides (see conftest).
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import exc as sa_exc


class TestNearbyEndpoint:

    @pytest.mark.asyncio
    async def test_nearby_returns_spots_with_distance(
        self, api_client, mock_db_session, scalars_result, spot_factory
    ):
        here = spot_factory(48.8566, 2.3522, name="Here")
        mock_db_session.execute.return_value = scalars_result([here])

        response = await api_client.get(
            "/api/v1/spots/nearby",
            params={"latitude": 48.8566, "longitude": 2.3522, "radius": 1},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"][0]["id"] == here.id
        assert body["data"][0]["distance_km"] == pytest.approx(0.0)
        assert body["meta"] == {
            "latitude": 48.8566,
            "longitude": 2.3522,
            "radius_km": 1.0,
            "limit": 20,
            "count": 1,
            "backend": "planar",
        }

    @pytest.mark.asyncio
    async def test_default_radius_applied(self, api_client, mock_db_session, scalars_result):
        mock_db_session.execute.return_value = scalars_result([])

        response = await api_client.get(
            "/api/v1/spots/nearby", params={"latitude": 10, "longitude": 20}
        )

        assert response.status_code == 200
        assert response.json()["meta"]["radius_km"] == 10.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"latitude": 48.8566},
        {"longitude": 2.3522},
    ])
    async def test_unpaired_coordinates_are_rejected(self, api_client, mock_db_session, params):
        response = await api_client.get("/api/v1/spots/nearby", params=params)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_query"
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params,field", [
        ({"latitude": 95, "longitude": 2}, "latitude"),
        ({"latitude": 48, "longitude": 2, "radius": 0}, "radius_km"),
        ({"latitude": 48, "longitude": 2, "limit": 0}, "limit"),
        ({"latitude": 48, "longitude": 2, "limit": 101}, "limit"),
    ])
    async def test_invalid_query_values(self, api_client, mock_db_session, params, field):
        response = await api_client.get("/api/v1/spots/nearby", params=params)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_query"
        assert body["details"]["field"] == field
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_outage_maps_to_503(self, api_client, mock_db_session):
        mock_db_session.execute.side_effect = sa_exc.OperationalError(
            "SELECT", {}, Exception("could not connect to server")
        )

        response = await api_client.get(
            "/api/v1/spots/nearby", params={"latitude": 48.8566, "longitude": 2.3522}
        )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"] == "service_unavailable"

    @pytest.mark.asyncio
    async def test_database_error_hides_details(self, api_client, mock_db_session):
        mock_db_session.execute.side_effect = sa_exc.ProgrammingError(
            "SELECT", {}, Exception("relation spots does not exist")
        )

        response = await api_client.get(
            "/api/v1/spots/nearby", params={"latitude": 48.8566, "longitude": 2.3522}
        )

        assert response.status_code == 500
        assert "relation" not in response.text


class TestSpotEndpoints:

    @pytest.mark.asyncio
    async def test_get_missing_spot(self, api_client):
        response = await api_client.get("/api/v1/spots/12345")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_get_spot(self, api_client, mock_db_session, spot_factory):
        spot = spot_factory(48.8606, 2.3376, name="Louvre")
        mock_db_session.get.return_value = spot

        response = await api_client.get(f"/api/v1/spots/{spot.id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Louvre"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_create_spot_with_invalid_body(self, api_client):
        response = await api_client.post("/api/v1/spots", json={"name": "x"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_spots_sets_total_header(
        self, api_client, mock_db_session, scalars_result, spot_factory
    ):
        count = MagicMock()
        count.scalar.return_value = 1
        mock_db_session.execute.side_effect = [
            scalars_result([spot_factory(1.0, 1.0)]),
            count,
        ]

        response = await api_client.get("/api/v1/spots", params={"page": 1, "limit": 5})

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "1"
        assert response.json()["meta"]["last_page"] == 1

    @pytest.mark.asyncio
    async def test_delete_spot(self, api_client, mock_db_session, spot_factory):
        mock_db_session.get.return_value = spot_factory(1.0, 1.0)

        response = await api_client.delete("/api/v1/spots/1")

        assert response.status_code == 204


class TestCategoryEndpoints:

    @pytest.mark.asyncio
    async def test_list_categories(
        self, api_client, mock_db_session, scalars_result, category_factory
    ):
        mock_db_session.execute.return_value = scalars_result([category_factory()])

        response = await api_client.get("/api/v1/categories")

        assert response.status_code == 200
        assert response.json()["data"][0]["slug"] == "cafes"

    @pytest.mark.asyncio
    async def test_delete_category_with_spots_conflicts(
        self, api_client, mock_db_session, category_factory
    ):
        mock_db_session.get.return_value = category_factory()
        count = MagicMock()
        count.scalar.return_value = 2
        mock_db_session.execute.return_value = count

        response = await api_client.delete("/api/v1/categories/1")

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_ping(self, api_client):
        response = await api_client.get("/health/ping")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_health_reports_backend(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "connected"
        assert body["spatial_backend"] == "planar"
        assert body["postgis"] == "unavailable"
        assert body["status"] == "healthy"


class TestPartialUpdates:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"latitude": None},
        {"name": None},
        {"category_id": None},
    ])
    async def test_null_spot_field_is_rejected(self, api_client, mock_db_session, body):
        response = await api_client.put("/api/v1/spots/1", json=body)

        assert response.status_code == 422
        mock_db_session.get.assert_not_called()
        mock_db_session.flush.assert_not_called()

    @pytest.mark.asyncio
    async def test_null_category_name_is_rejected(self, api_client, mock_db_session):
        response = await api_client.put("/api/v1/categories/1", json={"name": None})

        assert response.status_code == 422
        mock_db_session.flush.assert_not_called()


class TestCategoryDiscoveryEndpoints:

    @pytest.mark.asyncio
    async def test_popular_categories(self, api_client, mock_db_session, category_factory):
        rows = MagicMock()
        rows.all.return_value = [
            (category_factory(category_id=2, name="Parks", slug="parks"), 9),
            (category_factory(category_id=1, name="Cafes", slug="cafes"), 4),
        ]
        mock_db_session.execute.return_value = rows

        response = await api_client.get("/api/v1/categories/popular", params={"limit": 2})

        assert response.status_code == 200
        assert [(c["slug"], c["spot_count"]) for c in response.json()] == [
            ("parks", 9),
            ("cafes", 4),
        ]

    @pytest.mark.asyncio
    async def test_search_categories(
        self, api_client, mock_db_session, scalars_result, category_factory
    ):
        count = MagicMock()
        count.scalar.return_value = 1
        mock_db_session.execute.side_effect = [scalars_result([category_factory()]), count]

        response = await api_client.get("/api/v1/categories/search", params={"q": "caf"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"][0]["slug"] == "cafes"
        assert body["meta"]["total"] == 1

    @pytest.mark.asyncio
    async def test_search_requires_a_term(self, api_client):
        response = await api_client.get("/api/v1/categories/search", params={"q": ""})

        assert response.status_code == 422


class TestReviewEndpoints:

    def existing_review(self, review_id):
        result = MagicMock()
        result.scalar_one_or_none.return_value = review_id
        return result

    @pytest.mark.asyncio
    async def test_create_review(self, api_client, mock_db_session, spot_factory):
        mock_db_session.get.return_value = spot_factory(48.85, 2.35, id=5)
        mock_db_session.execute.return_value = self.existing_review(None)
        added = []
        mock_db_session.add.side_effect = added.append

        async def insert():
            for obj in added:
                obj.id = 1
                obj.is_active = True
                obj.created_at = datetime(2025, 2, 1, tzinfo=timezone.utc)

        mock_db_session.flush.side_effect = insert

        response = await api_client.post(
            "/api/v1/spots/5/reviews",
            json={"user_id": 7, "rating": 5, "comment": "Lovely terrace in the sun"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["spot_id"] == 5
        assert body["rating"] == 5

    @pytest.mark.asyncio
    async def test_second_review_conflicts(self, api_client, mock_db_session, spot_factory):
        mock_db_session.get.return_value = spot_factory(48.85, 2.35, id=5)
        mock_db_session.execute.return_value = self.existing_review(3)

        response = await api_client.post(
            "/api/v1/spots/5/reviews", json={"user_id": 7, "rating": 2}
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "conflict"
        assert body["details"]["field"] == "user_id"

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, api_client, mock_db_session):
        response = await api_client.post(
            "/api/v1/spots/5/reviews", json={"user_id": 7, "rating": 6}
        )

        assert response.status_code == 422
        mock_db_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_reviews_of_missing_spot(self, api_client):
        response = await api_client.get("/api/v1/spots/404/reviews")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stats(self, api_client, mock_db_session, spot_factory):
        mock_db_session.get.return_value = spot_factory(1.0, 1.0, id=5)
        result = MagicMock()
        result.one.return_value = (4.5, 2)
        mock_db_session.execute.return_value = result

        response = await api_client.get("/api/v1/spots/5/reviews/stats")

        assert response.status_code == 200
        assert response.json() == {"spot_id": 5, "average_rating": 4.5, "review_count": 2}

    @pytest.mark.asyncio
    async def test_delete_requires_author(self, api_client):
        response = await api_client.delete("/api/v1/spots/5/reviews/1")

        assert response.status_code == 422
