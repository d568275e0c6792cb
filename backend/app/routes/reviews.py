"""
LocalSpots Backend - Review Route Handlers
============================================

What:  Reviews nested under their spot, plus the cross-spot listings.

    GET    /api/v1/spots/{spot_id}/reviews              paginated, ?rating=
    POST   /api/v1/spots/{spot_id}/reviews              201, 409 on a second review
    GET    /api/v1/spots/{spot_id}/reviews/stats        average rating and count
    GET    /api/v1/spots/{spot_id}/reviews/{review_id}
    PUT    /api/v1/spots/{spot_id}/reviews/{review_id}  author only
    DELETE /api/v1/spots/{spot_id}/reviews/{review_id}  author only (?user_id=)
    GET    /api/v1/reviews/recent
    GET    /api/v1/users/{user_id}/reviews
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.review import (
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
    SpotReviewStats,
)
from app.services.review_service import review_service

router = APIRouter(prefix="/api/v1", tags=["Reviews"])

SPOT_NOT_FOUND = {404: {"description": "Spot not found", "model": ErrorResponse}}
REVIEW_NOT_FOUND = {
    404: {"description": "Review not found for this spot and author", "model": ErrorResponse}
}


@router.get(
    "/spots/{spot_id}/reviews",
    response_model=ReviewListResponse,
    responses=SPOT_NOT_FOUND,
    summary="Reviews of a spot, newest first",
)
async def list_spot_reviews(
    spot_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    rating: Optional[int] = Query(default=None, ge=1, le=5, description="Only this rating"),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    return await review_service.list_for_spot(
        db=db, spot_id=spot_id, page=page, limit=limit, rating=rating
    )


@router.post(
    "/spots/{spot_id}/reviews",
    status_code=201,
    response_model=ReviewResponse,
    responses={
        **SPOT_NOT_FOUND,
        409: {"description": "User already reviewed this spot", "model": ErrorResponse},
    },
    summary="Review a spot",
)
async def create_review(
    spot_id: int,
    payload: ReviewCreate,
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.create(db=db, spot_id=spot_id, data=payload)


@router.get(
    "/spots/{spot_id}/reviews/stats",
    response_model=SpotReviewStats,
    responses=SPOT_NOT_FOUND,
    summary="Average rating and review count of a spot",
)
async def spot_review_stats(
    spot_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> SpotReviewStats:
    return await review_service.stats(db=db, spot_id=spot_id)


@router.get(
    "/spots/{spot_id}/reviews/{review_id}",
    response_model=ReviewResponse,
    responses=REVIEW_NOT_FOUND,
    summary="Get a single review",
)
async def get_review(
    spot_id: int,
    review_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.get(db=db, spot_id=spot_id, review_id=review_id)


@router.put(
    "/spots/{spot_id}/reviews/{review_id}",
    response_model=ReviewResponse,
    responses=REVIEW_NOT_FOUND,
    summary="Update your review (partial)",
)
async def update_review(
    spot_id: int,
    review_id: int,
    payload: ReviewUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> ReviewResponse:
    return await review_service.update(
        db=db, spot_id=spot_id, review_id=review_id, data=payload
    )


@router.delete(
    "/spots/{spot_id}/reviews/{review_id}",
    status_code=204,
    responses=REVIEW_NOT_FOUND,
    summary="Delete your review",
)
async def delete_review(
    spot_id: int,
    review_id: int,
    user_id: int = Query(ge=1, description="Author of the review"),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await review_service.delete(
        db=db, spot_id=spot_id, review_id=review_id, user_id=user_id
    )
    return Response(status_code=204)


@router.get(
    "/reviews/recent",
    response_model=List[ReviewResponse],
    summary="Latest reviews across all spots",
)
async def recent_reviews(
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db_session),
) -> List[ReviewResponse]:
    return await review_service.recent(db=db, limit=limit)


@router.get(
    "/users/{user_id}/reviews",
    response_model=ReviewListResponse,
    summary="Reviews written by a user",
)
async def user_reviews(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    return await review_service.list_for_user(db=db, user_id=user_id, page=page, limit=limit)
