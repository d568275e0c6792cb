"""
LocalSpots Backend - Shared FastAPI Dependencies
==================================================
"""

from fastapi import Request

from app.exceptions import StoreUnavailableError
from app.services.proximity_service import ProximitySearch


def get_proximity_search(request: Request) -> ProximitySearch:
    """
    The ProximitySearch built by the lifespan handler at startup.

    Tests override this dependency through app.dependency_overrides.
    """
    search = getattr(request.app.state, "proximity_search", None)
    if search is None:
        # Startup has not finished selecting a backend
        raise StoreUnavailableError(
            message="Nearby search is not ready yet. Please try again shortly.",
            retry_after=1,
        )
    return search
