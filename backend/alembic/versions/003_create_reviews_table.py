"""Create reviews table

Revision ID: 003
Revises: 002
Create Date: 2025-09-01 00:00:02.000000+00:00

What:  Creates `reviews`: a 1..5 rating and optional comment left by a user
       on a spot.
How:   uq_reviews_spot_user enforces one review per user per spot; the
       service checks it first and reports a ConflictError, the constraint
       covers concurrent inserts. Reviews go with their spot (ON DELETE CASCADE).

Rollback: downgrade() drops the table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("spot_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_reviews"),
        sa.ForeignKeyConstraint(
            ["spot_id"],
            ["spots.id"],
            name="fk_reviews_spot_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("spot_id", "user_id", name="uq_reviews_spot_user"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )

    op.create_index("idx_reviews_spot_id", "reviews", ["spot_id"])
    op.create_index("idx_reviews_user_id", "reviews", ["user_id"])
    op.create_index("idx_reviews_rating", "reviews", ["rating"])
    op.create_index("idx_reviews_created_at", "reviews", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_reviews_created_at", table_name="reviews")
    op.drop_index("idx_reviews_rating", table_name="reviews")
    op.drop_index("idx_reviews_user_id", table_name="reviews")
    op.drop_index("idx_reviews_spot_id", table_name="reviews")
    op.drop_table("reviews")
