"""
LocalSpots Backend - Review SQLAlchemy Model
==============================================

What:  ORM model representing the `reviews` table.
Who:   Used by ReviewService and by Alembic for schema management.

A user reviews a spot at most once (uq_reviews_spot_user). user_id is an
opaque reference into the external identity service, like Spot.user_id.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.spot import Spot


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Review(Base):
    """
    A 1..5 star rating with an optional comment.

    Query Patterns:
        - Reviews of a spot: WHERE spot_id = :id ORDER BY created_at DESC
        - Reviews by a user: WHERE user_id = :id ORDER BY created_at DESC
        - Spot stats: AVG(rating), COUNT(*) WHERE spot_id = :id AND is_active
    """

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    spot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("spots.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=_utcnow,
        onupdate=_utcnow,
    )

    spot: Mapped["Spot"] = relationship(back_populates="reviews", lazy="raise")

    __table_args__ = (
        UniqueConstraint("spot_id", "user_id", name="uq_reviews_spot_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        Index("idx_reviews_spot_id", "spot_id"),
        Index("idx_reviews_user_id", "user_id"),
        Index("idx_reviews_rating", "rating"),
        Index("idx_reviews_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, spot_id={self.spot_id}, rating={self.rating})>"
