"""
LocalSpots Backend - Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the right HTTP status.
Who:   Raised by services; caught by the global handlers.

Exception Hierarchy:
    LocalSpotsError (base)
    ├── ValidationError            → 400 Bad Request
    │   └── InvalidQueryError      → 400 Bad Request (proximity search input)
    ├── NotFoundError              → 404 Not Found
    ├── ConflictError              → 409 Conflict
    ├── StoreUnavailableError      → 503 Service Unavailable (retry later)
    └── DatabaseError              → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class LocalSpotsError(Exception):
    """
    Base exception for all LocalSpots application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only by 4xx handlers)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(LocalSpotsError):
    """
    Raised when client input fails a business rule.

    HTTP:    400 Bad Request

    Schema-level problems (wrong types, out-of-range query params) are
    rejected earlier by FastAPI with 422; this covers the rules that need
    more than one field, such as coordinates supplied together.

    Example response:
        {
            "error": "validation_error",
            "message": "Latitude and longitude must be provided together",
            "details": {"field": "longitude"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidQueryError(ValidationError):
    """
    Raised by the proximity search when the query point is malformed.

    When:    Missing or out-of-range coordinates, non-positive or non-finite
             radius, non-positive limit.
    HTTP:    400 Bad Request

    Raised before any datastore access, so a rejected query never issues
    a read. Never retried.
    """

    def __init__(
        self,
        message: str = "Invalid proximity query",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class NotFoundError(LocalSpotsError):
    """
    Raised when a requested resource does not exist.

    When:    GET /api/v1/spots/{id} with an unknown id, or a spot referencing
             a category that does not exist.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(LocalSpotsError):
    """
    Raised when a write would violate a uniqueness rule.

    When:    Creating or renaming a category to a name/slug already taken.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The resource already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class StoreUnavailableError(LocalSpotsError):
    """
    Raised when the datastore cannot be reached or times out.

    When:    Connection refused, pool checkout timeout, connection dropped
             mid-query.
    HTTP:    503 Service Unavailable (with Retry-After)

    Propagated to the caller unchanged; the retry decision belongs to the
    client, not to the service that raised it.
    """

    def __init__(
        self,
        message: str = "The spot database is temporarily unavailable. Please try again shortly.",
        retry_after: int = 5,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(LocalSpotsError):
    """
    Raised when database operations fail unexpectedly.

    When:    Constraint violation, bad SQL, serialization problems.
    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; the original
    error type is kept in `context` and logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
