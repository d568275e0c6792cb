"""
LocalSpots Backend - Spot Request/Response Schemas
====================================================

What:  Pydantic models defining the API contract for spots and nearby search.
How:   FastAPI validates request bodies against these models, serializes
       responses through them, and generates the OpenAPI docs from them.

Schemas are kept apart from the SQLAlchemy models so the API can expose
computed fields (distance_km) and hide internal ones.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import PaginationMeta, reject_explicit_nulls

# Columns declared NOT NULL on the spots table
NON_NULLABLE_SPOT_FIELDS = ("name", "address", "latitude", "longitude", "category_id", "is_active")


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    cleaned = [tag.strip() for tag in v if tag and tag.strip()]
    # Preserve first-seen order while dropping duplicates
    return list(dict.fromkeys(cleaned))


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SpotCreate(BaseModel):
    """Body of POST /api/v1/spots."""

    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    address: str = Field(min_length=5, max_length=200)
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    category_id: int = Field(ge=1)
    user_id: Optional[int] = Field(default=None, ge=1)
    phone: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    opening_hours: Optional[str] = Field(default=None, max_length=500)
    price_range: Optional[str] = Field(default=None, max_length=20)
    tags: Optional[List[str]] = None

    @field_validator("name", "address", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class SpotUpdate(BaseModel):
    """
    Body of PUT /api/v1/spots/{id}.

    Every field is optional; only the fields present in the request body
    are applied (model_dump(exclude_unset=True)).
    """

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    address: Optional[str] = Field(default=None, min_length=5, max_length=200)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180, allow_inf_nan=False)
    category_id: Optional[int] = Field(default=None, ge=1)
    phone: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    opening_hours: Optional[str] = Field(default=None, max_length=500)
    price_range: Optional[str] = Field(default=None, max_length=20)
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("name", "address", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    @model_validator(mode="after")
    def reject_nulls(self) -> "SpotUpdate":
        return reject_explicit_nulls(self, NON_NULLABLE_SPOT_FIELDS)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SpotResponse(BaseModel):
    """Full representation of a spot."""

    id: int
    name: str
    description: Optional[str] = None
    address: str
    latitude: float
    longitude: float
    category_id: int
    user_id: Optional[int] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    opening_hours: Optional[str] = None
    price_range: Optional[str] = None
    tags: Optional[List[str]] = None
    is_active: bool
    is_verified: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SpotListResponse(BaseModel):
    """Paginated response for GET /api/v1/spots."""

    data: List[SpotResponse]
    meta: PaginationMeta


class NearbySpotResponse(SpotResponse):
    """
    A spot returned by the nearby search, with its distance from the query
    point in kilometers as computed by the active backend.
    """

    distance_km: float = Field(description="Distance from the query point (km)")


class NearbyMeta(BaseModel):
    """Echo of the effective query, after defaults were applied."""

    latitude: float
    longitude: float
    radius_km: float
    limit: int
    count: int = Field(description="Number of spots returned")
    backend: str = Field(description="Distance backend used: geodesic or planar")


class NearbyResponse(BaseModel):
    """Response for GET /api/v1/spots/nearby, nearest first."""

    data: List[NearbySpotResponse]
    meta: NearbyMeta
