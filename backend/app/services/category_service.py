"""
LocalSpots Backend - Category Service
=======================================

What:  CRUD, search and the per-category spot counts (all, most popular).
Who:   Called by the /api/v1/categories routes.

Names are unique case-insensitively; the slug is derived from the name and
is unique as well. Both rules are checked before writing and reported as
ConflictError (409) instead of surfacing an IntegrityError.
"""

import logging
import re
import unicodedata
from typing import List, Optional

from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import translate_store_error
from app.exceptions import ConflictError, LocalSpotsError, NotFoundError, ValidationError
from app.models import Category, Spot
from app.schemas.category import (
    CategoryCreate,
    CategoryListResponse,
    CategoryPageResponse,
    CategoryResponse,
    CategoryUpdate,
    CategoryWithCountResponse,
)
from app.schemas.common import pagination_meta
from app.services.spot_service import escape_like

logger = logging.getLogger(__name__)

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """'Cafés & Bars' -> 'cafes-bars'."""
    ascii_name = (
        unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    )
    return _NON_SLUG.sub("-", ascii_name.lower()).strip("-")


class CategoryService:
    """Business logic layer for category operations."""

    async def list_categories(
        self, db: AsyncSession, active_only: bool = False
    ) -> CategoryListResponse:
        """All categories ordered by name."""
        query = select(Category).order_by(Category.name)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        try:
            result = await db.execute(query)
            categories = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing categories: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not retrieve categories. Please try again."
            ) from e
        return CategoryListResponse(
            data=[CategoryResponse.model_validate(c) for c in categories]
        )

    async def get(self, db: AsyncSession, category_id: int) -> CategoryResponse:
        try:
            category = await db.get(Category, category_id)
            if category is None:
                raise NotFoundError(resource="category", resource_id=str(category_id))
            return CategoryResponse.model_validate(category)
        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error fetching category %s: %s", category_id, str(e))
            raise translate_store_error(
                e,
                "Could not retrieve the category. Please try again.",
                context={"category_id": category_id},
            ) from e

    async def create(self, db: AsyncSession, data: CategoryCreate) -> CategoryResponse:
        """
        Insert a category with a slug generated from its name.

        Raises:
            ValidationError: The name has no letters or digits to build a slug from
            ConflictError: Another category already uses the name or slug
        """
        slug = self._slug_for(data.name)
        try:
            await self._ensure_unique(db, data.name, slug)

            category = Category(slug=slug, **data.model_dump())
            db.add(category)
            await db.flush()
            logger.info("Category created: %s (%s)", category.id, slug)
            return CategoryResponse.model_validate(category)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error("Database error creating category: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not create the category. Please try again."
            ) from e

    async def update(
        self, db: AsyncSession, category_id: int, data: CategoryUpdate
    ) -> CategoryResponse:
        """Partial update; renaming regenerates the slug."""
        changes = data.model_dump(exclude_unset=True)
        try:
            category = await db.get(Category, category_id)
            if category is None:
                raise NotFoundError(resource="category", resource_id=str(category_id))

            new_name = changes.get("name")
            if new_name is not None and new_name != category.name:
                slug = self._slug_for(new_name)
                await self._ensure_unique(db, new_name, slug, exclude_id=category_id)
                changes["slug"] = slug

            for field, value in changes.items():
                setattr(category, field, value)
            await db.flush()
            logger.info("Category %s updated: %s", category_id, sorted(changes))
            return CategoryResponse.model_validate(category)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error(
                "Database error updating category %s: %s", category_id, str(e), exc_info=True
            )
            raise translate_store_error(
                e,
                "Could not update the category. Please try again.",
                context={"category_id": category_id},
            ) from e

    async def delete(self, db: AsyncSession, category_id: int) -> None:
        """
        Delete a category that has no spots.

        Raises:
            NotFoundError: Unknown category
            ConflictError: Spots still reference the category
        """
        try:
            category = await db.get(Category, category_id)
            if category is None:
                raise NotFoundError(resource="category", resource_id=str(category_id))

            count_result = await db.execute(
                select(func.count(Spot.id)).where(Spot.category_id == category_id)
            )
            spot_count = count_result.scalar() or 0
            if spot_count > 0:
                raise ConflictError(
                    message="Cannot delete a category that still has spots",
                    context={"category_id": category_id, "spot_count": spot_count},
                )

            await db.delete(category)
            await db.flush()
            logger.info("Category %s deleted", category_id)

        except LocalSpotsError:
            raise
        except Exception as e:
            logger.error(
                "Database error deleting category %s: %s", category_id, str(e), exc_info=True
            )
            raise translate_store_error(
                e,
                "Could not delete the category. Please try again.",
                context={"category_id": category_id},
            ) from e

    async def with_spot_count(self, db: AsyncSession) -> List[CategoryWithCountResponse]:
        """
        Every category with the number of its active spots.

        Query plan:
            SELECT categories.*, COUNT(spots.id) FROM categories
            LEFT JOIN spots ON spots.category_id = categories.id AND spots.is_active
            GROUP BY categories.id ORDER BY categories.name
        """
        query = self._counted_query().order_by(Category.name)
        return await self._counted(db, query)

    async def popular(
        self, db: AsyncSession, limit: int = 10
    ) -> List[CategoryWithCountResponse]:
        """The categories with the most active spots; ties go by name."""
        spot_count = func.count(Spot.id)
        query = (
            self._counted_query()
            .order_by(desc(spot_count), Category.name)
            .limit(limit)
        )
        return await self._counted(db, query)

    async def search(
        self, db: AsyncSession, term: str, page: int = 1, limit: int = 20
    ) -> CategoryPageResponse:
        """Case-insensitive substring match on name or description, by name."""
        pattern = f"%{escape_like(term.strip())}%"
        condition = or_(
            Category.name.ilike(pattern, escape="\\"),
            Category.description.ilike(pattern, escape="\\"),
        )
        query = (
            select(Category)
            .where(condition)
            .order_by(Category.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        try:
            result = await db.execute(query)
            categories = list(result.scalars().all())
            count_result = await db.execute(
                select(func.count(Category.id)).where(condition)
            )
            total = count_result.scalar() or 0
        except Exception as e:
            logger.error("Database error searching categories: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not search categories. Please try again."
            ) from e

        return CategoryPageResponse(
            data=[CategoryResponse.model_validate(c) for c in categories],
            meta=pagination_meta(total, page, limit),
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    def _counted_query(self):
        return (
            select(Category, func.count(Spot.id).label("spot_count"))
            .outerjoin(
                Spot,
                and_(Spot.category_id == Category.id, Spot.is_active.is_(True)),
            )
            .group_by(Category.id)
        )

    async def _counted(self, db: AsyncSession, query) -> List[CategoryWithCountResponse]:
        try:
            result = await db.execute(query)
            rows = result.all()
        except Exception as e:
            logger.error("Database error counting spots per category: %s", str(e), exc_info=True)
            raise translate_store_error(
                e, "Could not retrieve categories. Please try again."
            ) from e

        return [
            CategoryWithCountResponse(
                **CategoryResponse.model_validate(category).model_dump(),
                spot_count=count or 0,
            )
            for category, count in rows
        ]

    def _slug_for(self, name: str) -> str:
        slug = slugify(name)
        if not slug:
            raise ValidationError(
                message="Category name must contain letters or digits",
                field="name",
            )
        return slug

    async def _ensure_unique(
        self,
        db: AsyncSession,
        name: str,
        slug: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        query = select(Category).where(
            (func.lower(Category.name) == name.lower()) | (Category.slug == slug)
        )
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        result = await db.execute(query.limit(1))
        existing = result.scalar_one_or_none()
        if existing is not None:
            field = "slug" if existing.slug == slug else "name"
            raise ConflictError(
                message=f"A category named '{name}' already exists",
                field=field,
                context={"existing_id": existing.id},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
category_service = CategoryService()
