"""
LocalSpots Backend - Shared Response Schemas
==============================================

What:  Error, health and pagination payloads shared by every route module.
"""

import math
from typing import Iterable, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "invalid_query", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "invalid_query",
            "message": "radius_km must be greater than 0",
            "details": {"field": "radius_km"},
            "request_id": "3f2a9c1d"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.

    status is "unhealthy" when the database cannot be reached and
    "degraded" when the startup PostGIS check failed, leaving the nearby
    search on the planar fallback.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    spatial_backend: str = Field(description="Active proximity backend: geodesic, planar, uninitialized")
    postgis: str = Field(description="PostGIS status: available, unavailable")
    postgis_version: Optional[str] = Field(default=None, description="Installed PostGIS version")
    uptime_seconds: float = Field(description="Seconds since service started")


def reject_explicit_nulls(model: BaseModel, fields: Iterable[str]) -> BaseModel:
    """
    Partial updates treat an omitted field as "leave unchanged", but an
    explicit null for a NOT NULL column must fail validation (422) instead
    of reaching the database.
    """
    nulls = [
        name for name in fields
        if name in model.model_fields_set and getattr(model, name) is None
    ]
    if nulls:
        raise ValueError(f"{', '.join(nulls)} cannot be null")
    return model


class PaginationMeta(BaseModel):
    """Offset pagination state returned with list endpoints."""

    total: int = Field(description="Total number of rows matching the filters")
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Items per page")
    last_page: int = Field(description="Last page number (at least 1)")


def pagination_meta(total: int, page: int, limit: int) -> PaginationMeta:
    """Offset pagination state; last_page is at least 1 so empty lists have a page."""
    return PaginationMeta(
        total=total,
        page=page,
        limit=limit,
        last_page=max(1, math.ceil(total / limit)),
    )
