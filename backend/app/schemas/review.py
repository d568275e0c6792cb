"""
LocalSpots Backend - Review Request/Response Schemas
======================================================

There is no session or token here: the author is identified by the
user_id sent with the request, as spots carry theirs.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import PaginationMeta, reject_explicit_nulls


class ReviewCreate(BaseModel):
    """Body of POST /api/v1/spots/{spot_id}/reviews."""

    user_id: int = Field(ge=1, description="Author of the review")
    rating: int = Field(ge=1, le=5, description="1 (worst) to 5 (best)")
    comment: Optional[str] = Field(default=None, min_length=10, max_length=1000)

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, v):
        return v.strip() if isinstance(v, str) else v


class ReviewUpdate(BaseModel):
    """
    Body of PUT /api/v1/spots/{spot_id}/reviews/{review_id}.

    user_id must be the author's; rating and comment are applied only when
    present in the body.
    """

    user_id: int = Field(ge=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, min_length=10, max_length=1000)

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def reject_nulls(self) -> "ReviewUpdate":
        return reject_explicit_nulls(self, ("rating",))


class ReviewResponse(BaseModel):
    id: int
    spot_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReviewListResponse(BaseModel):
    data: List[ReviewResponse]
    meta: PaginationMeta


class SpotReviewStats(BaseModel):
    """Aggregate of the active reviews of one spot."""

    spot_id: int
    average_rating: float = Field(description="Mean rating, 0 when there are no reviews")
    review_count: int
