"""
LocalSpots Backend - Spot Route Handlers
==========================================

What:  /api/v1/spots: list, nearby search, detail, create, update, delete.
How:   Parses query parameters, applies the configured nearby defaults,
       delegates to SpotService and returns JSON.

Route order matters: /spots/nearby is declared before /spots/{spot_id}
so that "nearby" is never parsed as an id.

Nearby parameter rules:
    - latitude and longitude must be given together (400 otherwise)
    - radius defaults to NEARBY_DEFAULT_RADIUS_KM, limit to NEARBY_DEFAULT_LIMIT
    - limit above NEARBY_MAX_LIMIT is rejected (400)
    - range checks on the values themselves happen in ProximitySearch, so
      every malformed query gets the same "invalid_query" error
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.dependencies import get_proximity_search
from app.exceptions import InvalidQueryError
from app.schemas.common import ErrorResponse
from app.schemas.spot import (
    NearbyResponse,
    SpotCreate,
    SpotListResponse,
    SpotResponse,
    SpotUpdate,
)
from app.services.proximity_base import QueryPoint
from app.services.proximity_service import ProximitySearch
from app.services.spot_service import spot_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1/spots", tags=["Spots"])


@router.get(
    "",
    response_model=SpotListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List spots with pagination",
)
async def list_spots(
    response: Response,
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    category_id: Optional[int] = Query(default=None, ge=1),
    search: Optional[str] = Query(
        default=None,
        max_length=100,
        description="Case-insensitive match on name, description or address",
    ),
    include_inactive: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
) -> SpotListResponse:
    result = await spot_service.list_spots(
        db=db,
        page=page,
        limit=limit,
        category_id=category_id,
        search=search,
        include_inactive=include_inactive,
    )
    response.headers["X-Total-Count"] = str(result.meta.total)
    return result


@router.get(
    "/nearby",
    response_model=NearbyResponse,
    responses={
        400: {"description": "Invalid coordinates, radius or limit", "model": ErrorResponse},
        503: {"description": "Spot database unavailable", "model": ErrorResponse},
    },
    summary="Find spots near a point",
    description=(
        "Returns the spots within `radius` kilometers of (latitude, longitude), "
        "nearest first, ties broken by ascending id. Distances are computed by the "
        "backend selected at startup (geodesic or planar), reported in meta.backend."
    ),
)
async def nearby_spots(
    latitude: Optional[float] = Query(default=None, description="Latitude, -90..90"),
    longitude: Optional[float] = Query(default=None, description="Longitude, -180..180"),
    radius: Optional[float] = Query(default=None, description="Search radius in km"),
    limit: Optional[int] = Query(default=None, description="Maximum number of spots"),
    category_id: Optional[int] = Query(default=None, ge=1),
    include_inactive: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
    search: ProximitySearch = Depends(get_proximity_search),
) -> NearbyResponse:
    """
    Radius search around a point.

    Example:
        GET /api/v1/spots/nearby?latitude=48.8566&longitude=2.3522&radius=5&limit=10
    """
    if latitude is None or longitude is None:
        missing = "latitude" if latitude is None else "longitude"
        raise InvalidQueryError(
            message="Latitude and longitude must be provided together",
            field=missing,
        )

    effective_limit = settings.nearby_default_limit if limit is None else limit
    if effective_limit > settings.nearby_max_limit:
        raise InvalidQueryError(
            message=f"limit must not exceed {settings.nearby_max_limit}",
            field="limit",
        )

    point = QueryPoint(
        latitude=latitude,
        longitude=longitude,
        radius_km=settings.nearby_default_radius_km if radius is None else radius,
        limit=effective_limit,
    )
    return await spot_service.nearby(
        db,
        search,
        point,
        active_only=not include_inactive,
        category_id=category_id,
    )


@router.get(
    "/{spot_id}",
    response_model=SpotResponse,
    responses={404: {"description": "Spot not found", "model": ErrorResponse}},
    summary="Get a single spot",
)
async def get_spot(
    spot_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> SpotResponse:
    return await spot_service.get(db=db, spot_id=spot_id)


@router.post(
    "",
    status_code=201,
    response_model=SpotResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Create a spot",
)
async def create_spot(
    payload: SpotCreate,
    db: AsyncSession = Depends(get_db_session),
) -> SpotResponse:
    return await spot_service.create(db=db, data=payload)


@router.put(
    "/{spot_id}",
    response_model=SpotResponse,
    responses={404: {"description": "Spot or category not found", "model": ErrorResponse}},
    summary="Update a spot (partial)",
)
async def update_spot(
    spot_id: int,
    payload: SpotUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> SpotResponse:
    return await spot_service.update(db=db, spot_id=spot_id, data=payload)


@router.delete(
    "/{spot_id}",
    status_code=204,
    responses={404: {"description": "Spot not found", "model": ErrorResponse}},
    summary="Delete a spot",
)
async def delete_spot(
    spot_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await spot_service.delete(db=db, spot_id=spot_id)
    return Response(status_code=204)
