"""
LocalSpots Backend - Review Service (Business Logic)
======================================================

What:  Reviews of spots: create, read, update, delete, per-spot and
       per-user listings, recent reviews and rating statistics.
Who:   Called by the review routes.

Rules:
    - One review per user per spot. Checked before the insert and reported
      as ConflictError (409); the unique constraint on (spot_id, user_id)
      catches concurrent duplicates and is reported the same way.
    - A review is addressed through its spot: asking for review 7 under a
      spot it does not belong to is a 404.
    - Only the author (matching user_id) may change or delete a review;
      anyone else gets the same 404 as for a missing review.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import translate_store_error
from app.exceptions import ConflictError, LocalSpotsError, NotFoundError
from app.models import Review, Spot
from app.schemas.common import pagination_meta
from app.schemas.review import (
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
    SpotReviewStats,
)

logger = logging.getLogger(__name__)


class ReviewService:
    """Business logic layer for review operations."""

    async def create(
        self, db: AsyncSession, spot_id: int, data: ReviewCreate
    ) -> ReviewResponse:
        """
        Add a review to a spot.

        Raises:
            NotFoundError: Unknown spot (404)
            ConflictError: This user already reviewed the spot (409)
        """
        try:
            await self._ensure_spot(db, spot_id)

            existing = await db.execute(
                select(Review.id)
                .where(Review.spot_id == spot_id, Review.user_id == data.user_id)
                .limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                raise self._duplicate(spot_id, data.user_id)

            review = Review(spot_id=spot_id, **data.model_dump())
            db.add(review)
            await db.flush()
            logger.info(
                "Review created: %s (spot=%s, user=%s, rating=%s)",
                review.id, spot_id, data.user_id, data.rating,
            )
            return ReviewResponse.model_validate(review)

        except LocalSpotsError:
            raise
        except sa_exc.IntegrityError as e:
            # Lost a race against a concurrent insert of the same review
            logger.warning("Duplicate review rejected by constraint: %s", str(e))
            raise self._duplicate(spot_id, data.user_id) from e
        except Exception as e:
            logger.error("Database error creating review: %s", str(e), exc_info=True)
            raise translate_store_error(
                e,
                "Could not save the review. Please try again.",
                context={"spot_id": spot_id},
            ) from e

    async def get(self, db: AsyncSession, spot_id: int, review_id: int) -> ReviewResponse:
        try:
            review = await self._find(db, spot_id, review_id)
            return ReviewResponse.model_validate(review)
        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error fetching review %s: %s", review_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve the review. Please try again.",
                context={"review_id": review_id},
            ) from e

    async def update(
        self, db: AsyncSession, spot_id: int, review_id: int, data: ReviewUpdate
    ) -> ReviewResponse:
        """Change rating and/or comment of the author's own review."""
        changes = data.model_dump(exclude_unset=True, exclude={"user_id"})
        try:
            review = await self._find(db, spot_id, review_id, user_id=data.user_id)
            for field, value in changes.items():
                setattr(review, field, value)
            await db.flush()
            logger.info("Review %s updated: %s", review_id, sorted(changes))
            return ReviewResponse.model_validate(review)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error updating review %s: %s", review_id, str(e), exc_info=True)
            raise translate_store_error(
                e,
                "Could not update the review. Please try again.",
                context={"review_id": review_id},
            ) from e

    async def delete(
        self, db: AsyncSession, spot_id: int, review_id: int, user_id: int
    ) -> None:
        try:
            review = await self._find(db, spot_id, review_id, user_id=user_id)
            await db.delete(review)
            await db.flush()
            logger.info("Review %s deleted", review_id)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error deleting review %s: %s", review_id, str(e), exc_info=True)
            raise translate_store_error(
                e,
                "Could not delete the review. Please try again.",
                context={"review_id": review_id},
            ) from e

    async def list_for_spot(
        self,
        db: AsyncSession,
        spot_id: int,
        page: int = 1,
        limit: int = 20,
        rating: Optional[int] = None,
    ) -> ReviewListResponse:
        """Active reviews of a spot, newest first, optionally of one rating."""
        conditions: List[Any] = [Review.spot_id == spot_id, Review.is_active.is_(True)]
        if rating is not None:
            conditions.append(Review.rating == rating)
        try:
            await self._ensure_spot(db, spot_id)
            return await self._paginate(db, conditions, page, limit)
        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error listing reviews of spot %s: %s", spot_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve reviews. Please try again.",
                context={"spot_id": spot_id},
            ) from e

    async def list_for_user(
        self, db: AsyncSession, user_id: int, page: int = 1, limit: int = 20
    ) -> ReviewListResponse:
        """Every review written by a user, newest first."""
        try:
            return await self._paginate(db, [Review.user_id == user_id], page, limit)
        except Exception as e:
            logger.error("Database error listing reviews of user %s: %s", user_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve reviews. Please try again.",
                context={"user_id": user_id},
            ) from e

    async def recent(self, db: AsyncSession, limit: int = 10) -> List[ReviewResponse]:
        """The latest active reviews across all spots."""
        query = (
            select(Review)
            .where(Review.is_active.is_(True))
            .order_by(desc(Review.created_at), desc(Review.id))
            .limit(limit)
        )
        try:
            result = await db.execute(query)
            reviews = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing recent reviews: %s", str(e))
            raise translate_store_error(
                e, "Could not retrieve reviews. Please try again."
            ) from e
        return [ReviewResponse.model_validate(r) for r in reviews]

    async def stats(self, db: AsyncSession, spot_id: int) -> SpotReviewStats:
        """
        Average rating and number of active reviews of a spot.

        Query plan:
            SELECT AVG(rating), COUNT(id) FROM reviews
            WHERE spot_id = :id AND is_active
        """
        try:
            await self._ensure_spot(db, spot_id)
            result = await db.execute(
                select(func.avg(Review.rating), func.count(Review.id)).where(
                    Review.spot_id == spot_id, Review.is_active.is_(True)
                )
            )
            average, count = result.one()
        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error computing stats of spot %s: %s", spot_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve review statistics. Please try again.",
                context={"spot_id": spot_id},
            ) from e

        return SpotReviewStats(
            spot_id=spot_id,
            average_rating=round(float(average), 2) if average is not None else 0.0,
            review_count=count or 0,
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    def _duplicate(self, spot_id: int, user_id: int) -> ConflictError:
        return ConflictError(
            message="This user has already reviewed this spot",
            field="user_id",
            context={"spot_id": spot_id, "user_id": user_id},
        )

    async def _ensure_spot(self, db: AsyncSession, spot_id: int) -> None:
        if await db.get(Spot, spot_id) is None:
            raise NotFoundError(resource="spot", resource_id=str(spot_id))

    async def _find(
        self,
        db: AsyncSession,
        spot_id: int,
        review_id: int,
        user_id: Optional[int] = None,
    ) -> Review:
        review = await db.get(Review, review_id)
        if (
            review is None
            or review.spot_id != spot_id
            or (user_id is not None and review.user_id != user_id)
        ):
            raise NotFoundError(resource="review", resource_id=str(review_id))
        return review

    async def _paginate(
        self,
        db: AsyncSession,
        conditions: List[Any],
        page: int,
        limit: int,
    ) -> ReviewListResponse:
        query = (
            select(Review)
            .where(*conditions)
            .order_by(desc(Review.created_at), desc(Review.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await db.execute(query)
        reviews = list(result.scalars().all())

        count_result = await db.execute(select(func.count(Review.id)).where(*conditions))
        total = count_result.scalar() or 0

        return ReviewListResponse(
            data=[ReviewResponse.model_validate(r) for r in reviews],
            meta=pagination_meta(total, page, limit),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
review_service = ReviewService()
