"""
LocalSpots Backend - Spot SQLAlchemy Model
============================================

What:  ORM model representing the `spots` table.
Who:   Used by SpotService for CRUD, by ProximitySearch for nearby reads,
       and by Alembic for schema management.

Table Design:
    - Integer primary key assigned by the database
    - latitude NUMERIC(10,8), longitude NUMERIC(11,8): eight decimal places
      (about 1 mm); read back as float (asdecimal=False)
    - category_id: FK to categories, cascade on delete
    - user_id: owner reference; users live in an external identity service,
      so there is no FK here
    - is_active: soft-delete flag. ProximitySearch does not filter on it by
      itself; callers pass `active_only` explicitly
    - tags: JSON list of strings (portable between PostgreSQL and SQLite)

    Composite index on (latitude, longitude):
        Serves the bounding-box prefilter used by the planar backend and by
        the geodesic backend when PostGIS is missing. With PostGIS, migration
        004 adds a GiST index on the geography expression instead.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.category import Category
    from app.models.review import Review


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Spot(Base):
    """
    A point of interest with coordinates, belonging to a category.

    Query Patterns:
        - Nearby search: bounding box / ST_DWithin prefilter, distance
          computed by the selected proximity backend
        - List recent spots: ORDER BY created_at DESC, id DESC LIMIT :limit
        - Spots in a category: WHERE category_id = :id (idx_spots_category_id)
    """

    __tablename__ = "spots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(200), nullable=False)

    # ── Coordinates ───────────────────────────────────────────────────────
    latitude: Mapped[float] = mapped_column(
        Numeric(10, 8, asdecimal=False),
        nullable=False,
        comment="Latitude in decimal degrees, [-90, 90]",
    )
    longitude: Mapped[float] = mapped_column(
        Numeric(11, 8, asdecimal=False),
        nullable=False,
        comment="Longitude in decimal degrees, [-180, 180]",
    )

    # ── Ownership ─────────────────────────────────────────────────────────
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # ── Optional details ──────────────────────────────────────────────────
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    opening_hours: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    price_range: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # ── Flags ─────────────────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    # ── Timestamps ────────────────────────────────────────────────────────
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

    category: Mapped["Category"] = relationship(back_populates="spots", lazy="raise")
    reviews: Mapped[List["Review"]] = relationship(
        back_populates="spot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_spots_latitude_range"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_spots_longitude_range"),
        Index("idx_spots_lat_lng", "latitude", "longitude"),
        Index("idx_spots_category_id", "category_id"),
        Index("idx_spots_user_id", "user_id"),
        Index("idx_spots_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Spot(id={self.id}, name='{self.name}', "
            f"lat={self.latitude}, lng={self.longitude})>"
        )
