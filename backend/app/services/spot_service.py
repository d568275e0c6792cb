"""
LocalSpots Backend - Spot Service (Business Logic)
====================================================

What:  CRUD, listing and nearby search for spots.
How:   Builds SQLAlchemy queries, converts rows into response schemas and
       translates database failures into the application's exceptions.
Who:   Called by the /api/v1/spots and /api/v1/categories/{id}/spots routes.
When:  Once per request; every method receives the request's session.

Design Decision:
    SpotService is stateless; it receives the session (and, for nearby
    search, the process-wide ProximitySearch) on every call. Flushes make
    rows visible inside the request, the commit happens in get_db_session.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import translate_store_error
from app.exceptions import LocalSpotsError, NotFoundError
from app.models import Category, Spot
from app.schemas.common import pagination_meta
from app.schemas.spot import (
    NearbyMeta,
    NearbyResponse,
    NearbySpotResponse,
    SpotCreate,
    SpotListResponse,
    SpotResponse,
    SpotUpdate,
)
from app.services.proximity_base import QueryPoint
from app.services.proximity_service import ProximitySearch

logger = logging.getLogger(__name__)


def escape_like(term: str) -> str:
    """Make % and _ in user input match literally (paired with escape="\\")."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_condition(term: str):
    """Case-insensitive substring match over name, description and address."""
    pattern = f"%{escape_like(term)}%"
    return or_(
        Spot.name.ilike(pattern, escape="\\"),
        Spot.description.ilike(pattern, escape="\\"),
        Spot.address.ilike(pattern, escape="\\"),
    )


class SpotService:
    """
    Business logic layer for spot operations.

    Responsibilities:
        - create() / get() / update() / delete(): single-spot operations
        - list_spots(): filtered offset pagination, newest first
        - list_by_category(): the spots of one category
        - nearby(): radius search through ProximitySearch

    Error Handling Strategy:
        Our own exceptions (NotFoundError, ...) propagate unchanged. Any
        other failure is translated by translate_store_error():
        StoreUnavailableError when the database is unreachable, a generic
        DatabaseError otherwise.
    """

    async def create(self, db: AsyncSession, data: SpotCreate) -> SpotResponse:
        """
        Insert a new spot.

        Raises:
            NotFoundError: category_id does not reference a category (404)
            StoreUnavailableError / DatabaseError: persistence failed
        """
        try:
            await self._ensure_category(db, data.category_id)

            spot = Spot(**data.model_dump())
            db.add(spot)
            await db.flush()  # Assigns the id without committing
            logger.info("Spot created: %s (category=%s)", spot.id, spot.category_id)
            return SpotResponse.model_validate(spot)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error creating spot: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not create the spot. Please try again."
            ) from e

    async def get(self, db: AsyncSession, spot_id: int) -> SpotResponse:
        """
        Retrieve a single spot by id.

        Raises:
            NotFoundError: No spot with this id (404)
        """
        try:
            spot = await db.get(Spot, spot_id)
            if spot is None:
                raise NotFoundError(resource="spot", resource_id=str(spot_id))
            return SpotResponse.model_validate(spot)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error fetching spot %s: %s", spot_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve the spot. Please try again.",
                context={"spot_id": spot_id},
            ) from e

    async def list_spots(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> SpotListResponse:
        """
        List spots with offset pagination, newest first.

        Query plan (no filters):
            SELECT * FROM spots WHERE is_active
            ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset
            plus a COUNT(*) with the same WHERE clause for the meta block.

        Args:
            page: 1-based page number
            limit: Items per page
            category_id: Only spots of this category
            search: Case-insensitive match on name, description or address
            include_inactive: Also list spots with is_active = false
        """
        conditions: List[Any] = []
        if not include_inactive:
            conditions.append(Spot.is_active.is_(True))
        if category_id is not None:
            conditions.append(Spot.category_id == category_id)
        if search and search.strip():
            conditions.append(search_condition(search.strip()))

        try:
            return await self._paginate(db, conditions, page, limit)
        except Exception as e:
            logger.error("Database error listing spots: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not retrieve spots. Please try again."
            ) from e

    async def update(self, db: AsyncSession, spot_id: int, data: SpotUpdate) -> SpotResponse:
        """
        Apply a partial update; only fields present in the request are written.

        Raises:
            NotFoundError: Unknown spot, or a category_id that does not exist
        """
        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
        try:
            spot = await db.get(Spot, spot_id)
            if spot is None:
                raise NotFoundError(resource="spot", resource_id=str(spot_id))

            new_category = changes.get("category_id")
            if new_category is not None and new_category != spot.category_id:
                await self._ensure_category(db, new_category)

            for field, value in changes.items():
                setattr(spot, field, value)
            await db.flush()
            logger.info("Spot %s updated: %s", spot_id, sorted(changes))
            return SpotResponse.model_validate(spot)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error updating spot %s: %s", spot_id, str(e), exc_info=True)
            raise translate_store_error(
                e,
                "Could not update the spot. Please try again.",
                context={"spot_id": spot_id},
            ) from e

    async def delete(self, db: AsyncSession, spot_id: int) -> None:
        """
        Hard-delete a spot.

        Raises:
            NotFoundError: No spot with this id (404)
        """
        try:
            spot = await db.get(Spot, spot_id)
            if spot is None:
                raise NotFoundError(resource="spot", resource_id=str(spot_id))
            await db.delete(spot)
            await db.flush()
            logger.info("Spot %s deleted", spot_id)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error deleting spot %s: %s", spot_id, str(e), exc_info=True)
            raise translate_store_error(
                e,
                "Could not delete the spot. Please try again.",
                context={"spot_id": spot_id},
            ) from e

    async def list_by_category(
        self,
        db: AsyncSession,
        category_id: int,
        page: int = 1,
        limit: int = 20,
    ) -> SpotListResponse:
        """Active spots of one category, newest first. 404 if the category is unknown."""
        try:
            await self._ensure_category(db, category_id)
            return await self._paginate(
                db,
                [Spot.category_id == category_id, Spot.is_active.is_(True)],
                page,
                limit,
            )

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error(
                "Database error listing spots of category %s: %s", category_id, str(e)
            )
            raise translate_store_error(
                e,
                "Could not retrieve spots. Please try again.",
                context={"category_id": category_id},
            ) from e

    async def nearby(
        self,
        db: AsyncSession,
        search: ProximitySearch,
        point: QueryPoint,
        *,
        active_only: bool,
        category_id: Optional[int] = None,
    ) -> NearbyResponse:
        """
        Spots within the radius, nearest first, shaped for the API.

        Errors from ProximitySearch (InvalidQueryError,
        StoreUnavailableError, DatabaseError) propagate unchanged.
        """
        matches = await search.find_nearby(
            db, point, active_only=active_only, category_id=category_id
        )
        data = [
            NearbySpotResponse(
                **SpotResponse.model_validate(match.spot).model_dump(),
                distance_km=match.distance_km,
            )
            for match in matches
        ]
        return NearbyResponse(
            data=data,
            meta=NearbyMeta(
                latitude=point.latitude,
                longitude=point.longitude,
                radius_km=point.radius_km,
                limit=point.limit,
                count=len(data),
                backend=search.backend_name,
            ),
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _ensure_category(self, db: AsyncSession, category_id: int) -> None:
        if await db.get(Category, category_id) is None:
            raise NotFoundError(resource="category", resource_id=str(category_id))

    async def _paginate(
        self,
        db: AsyncSession,
        conditions: List[Any],
        page: int,
        limit: int,
    ) -> SpotListResponse:
        query = (
            select(Spot)
            .where(*conditions)
            .order_by(desc(Spot.created_at), desc(Spot.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await db.execute(query)
        spots = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count(Spot.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        return SpotListResponse(
            data=[SpotResponse.model_validate(spot) for spot in spots],
            meta=pagination_meta(total, page, limit),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
spot_service = SpotService()
