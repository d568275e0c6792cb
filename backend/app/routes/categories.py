"""
LocalSpots Backend - Category Route Handlers
==============================================

What:  /api/v1/categories CRUD, spot counts, popular categories, search
       and the spots of a category.

/with-spot-count, /popular and /search are declared before /{category_id}.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.category import (
    CategoryCreate,
    CategoryListResponse,
    CategoryPageResponse,
    CategoryResponse,
    CategoryUpdate,
    CategoryWithCountResponse,
)
from app.schemas.common import ErrorResponse
from app.schemas.spot import SpotListResponse
from app.services.category_service import category_service
from app.services.spot_service import spot_service

router = APIRouter(prefix="/api/v1/categories", tags=["Categories"])


@router.get("", response_model=CategoryListResponse, summary="List categories")
async def list_categories(
    active_only: bool = Query(default=False, description="Only active categories"),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryListResponse:
    return await category_service.list_categories(db=db, active_only=active_only)


@router.get(
    "/with-spot-count",
    response_model=List[CategoryWithCountResponse],
    summary="Categories with the number of their active spots",
)
async def categories_with_spot_count(
    db: AsyncSession = Depends(get_db_session),
) -> List[CategoryWithCountResponse]:
    return await category_service.with_spot_count(db=db)


@router.get(
    "/popular",
    response_model=List[CategoryWithCountResponse],
    summary="Categories with the most active spots",
)
async def popular_categories(
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db_session),
) -> List[CategoryWithCountResponse]:
    return await category_service.popular(db=db, limit=limit)


@router.get(
    "/search",
    response_model=CategoryPageResponse,
    summary="Search categories by name or description",
)
async def search_categories(
    q: str = Query(min_length=1, max_length=100, description="Search term"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> CategoryPageResponse:
    return await category_service.search(db=db, term=q, page=page, limit=limit)


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Get a single category",
)
async def get_category(
    category_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return await category_service.get(db=db, category_id=category_id)


@router.get(
    "/{category_id}/spots",
    response_model=SpotListResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Active spots of a category",
)
async def category_spots(
    category_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> SpotListResponse:
    return await spot_service.list_by_category(
        db=db, category_id=category_id, page=page, limit=limit
    )


@router.post(
    "",
    status_code=201,
    response_model=CategoryResponse,
    responses={409: {"description": "Name already taken", "model": ErrorResponse}},
    summary="Create a category",
)
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return await category_service.create(db=db, data=payload)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        404: {"description": "Category not found", "model": ErrorResponse},
        409: {"description": "Name already taken", "model": ErrorResponse},
    },
    summary="Update a category (partial)",
)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> CategoryResponse:
    return await category_service.update(db=db, category_id=category_id, data=payload)


@router.delete(
    "/{category_id}",
    status_code=204,
    responses={
        404: {"description": "Category not found", "model": ErrorResponse},
        409: {"description": "Category still has spots", "model": ErrorResponse},
    },
    summary="Delete a category without spots",
)
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await category_service.delete(db=db, category_id=category_id)
    return Response(status_code=204)
