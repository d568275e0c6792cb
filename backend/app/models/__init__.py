"""
LocalSpots Backend - ORM Models
================================

Importing this package registers every table on `Base.metadata`, which is
what Alembic's autogenerate and the test fixtures read.
"""

from app.models.category import Category
from app.models.review import Review
from app.models.spot import Spot

__all__ = ["Category", "Review", "Spot"]
