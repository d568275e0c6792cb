"""
LocalSpots Backend - Category Request/Response Schemas
========================================================
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import PaginationMeta, reject_explicit_nulls

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not HEX_COLOR.match(v):
        raise ValueError("color must be a hex value like '#1A2B3C'")
    return v


class CategoryCreate(BaseModel):
    """Body of POST /api/v1/categories. The slug is derived from the name."""

    name: str = Field(min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)


class CategoryUpdate(BaseModel):
    """Body of PUT /api/v1/categories/{id}; partial update."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)

    @model_validator(mode="after")
    def reject_nulls(self) -> "CategoryUpdate":
        return reject_explicit_nulls(self, ("name", "is_active"))


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategoryWithCountResponse(CategoryResponse):
    """Category plus the number of its active spots."""

    spot_count: int = Field(description="Number of active spots in this category")


class CategoryListResponse(BaseModel):
    data: List[CategoryResponse]


class CategoryPageResponse(BaseModel):
    """Paginated categories (search results)."""

    data: List[CategoryResponse]
    meta: PaginationMeta
