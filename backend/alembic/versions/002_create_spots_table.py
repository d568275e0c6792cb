"""Create spots table

Revision ID: 002
Revises: 001
Create Date: 2025-09-01 00:00:01.000000+00:00

What:  Creates `spots` with its coordinate, category and flag indexes.
How:   NUMERIC(10,8)/NUMERIC(11,8) keep eight decimal places of latitude
       and longitude. idx_spots_lat_lng serves the bounding-box prefilter
       of the nearby search when PostGIS is not installed.

Rollback: downgrade() drops the table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "spots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(200), nullable=False),
        sa.Column(
            "latitude",
            sa.Numeric(10, 8),
            nullable=False,
            comment="Latitude in decimal degrees, [-90, 90]",
        ),
        sa.Column(
            "longitude",
            sa.Numeric(11, 8),
            nullable=False,
            comment="Longitude in decimal degrees, [-180, 180]",
        ),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("opening_hours", sa.String(500), nullable=True),
        sa.Column("price_range", sa.String(20), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_spots"),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_spots_category_id",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_spots_latitude_range"),
        sa.CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_spots_longitude_range"),
    )

    op.create_index("idx_spots_lat_lng", "spots", ["latitude", "longitude"])
    op.create_index("idx_spots_category_id", "spots", ["category_id"])
    op.create_index("idx_spots_user_id", "spots", ["user_id"])
    op.create_index("idx_spots_is_active", "spots", ["is_active"])


def downgrade() -> None:
    op.drop_index("idx_spots_is_active", table_name="spots")
    op.drop_index("idx_spots_user_id", table_name="spots")
    op.drop_index("idx_spots_category_id", table_name="spots")
    op.drop_index("idx_spots_lat_lng", table_name="spots")
    op.drop_table("spots")
