"""Enable PostGIS and index spot locations

Revision ID: 004
Revises: 003
Create Date: 2025-09-01 00:00:03.000000+00:00

What:  Installs the postgis extension and a GiST index on the geography
       point of every spot.
How:   The index expression must match the ST_DWithin prefilter in
       app/services/geodesic_backend.py, otherwise the planner ignores it.
       Skipped entirely on non-PostgreSQL databases.

If the extension cannot be created (not installed on the server, missing
privileges) the migration fails; run it on a PostGIS-enabled image or set
SPATIAL_BACKEND=planar and stop at revision 003.
"""

from typing import Sequence, Union
from alembic import op

# revision identifiers
revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_spots_location_gist ON spots "
        "USING GIST ((ST_MakePoint(longitude, latitude)::geography))"
    )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP INDEX IF EXISTS idx_spots_location_gist")
    # The extension may be shared with other schemas; it is left installed
