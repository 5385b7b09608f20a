"""
Remarket Backend - Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for each failure class the API reports.
How:   Each exception carries a message and an optional context dict. Global
       handlers (registered in main.py) map them to HTTP status codes and a
       structured JSON body.
Who:   Raised by the gateway, services, security helpers and middleware.
When:  During request processing when a recoverable error occurs.

Exception Hierarchy:
    RemarketError (base)                → 500 Internal Server Error
    ├── ValidationError                 → 422 Unprocessable Entity
    │   └── InvalidIdentifierError      → 422 (malformed 24-hex id)
    ├── AuthenticationError             → 401 Unauthorized
    ├── AuthorizationError              → 403 Forbidden
    ├── NotFoundError                   → 404 Not Found
    ├── ConflictError                   → 409 Conflict
    ├── DatabaseError                   → 500 Internal Server Error
    └── RateLimitExceededError          → 429 Too Many Requests
"""

from typing import Any, Dict, Optional


class RemarketError(Exception):
    """
    Base exception for all Remarket application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional info. Returned as `details` for 4xx errors,
                  only logged for 5xx errors.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RemarketError):
    """
    Raised when input violates a business or persistence rule.

    HTTP: 422 Unprocessable Entity, the same status FastAPI uses for request
    schema failures, so clients see one code for "fix your input".

    Example response:
        {
            "error": "validation_error",
            "message": "Listing record is invalid",
            "details": {"errors": [{"field": "price", "message": "..."}]}
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


class InvalidIdentifierError(ValidationError):
    """Raised when an identifier is not a 24-character hex string."""

    def __init__(self, value: Any = None, field: Optional[str] = "id"):
        super().__init__(
            message=f"'{value}' is not a valid identifier",
            field=field,
            context={"value": str(value)},
        )


class AuthenticationError(RemarketError):
    """
    Raised when the caller cannot be identified.

    When: missing/expired/invalid token, wrong credentials, refresh token
    that no longer matches the stored one.
    HTTP: 401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(RemarketError):
    """
    Raised when an identified caller may not perform the operation.

    When: non-admin on an admin route, editing another user's listing or
    review, login to an inactive account.
    HTTP: 403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(RemarketError):
    """
    Raised when a requested resource does not exist (or is soft-deleted).

    The gateway returns None for missing records; services convert that
    None into NotFoundError so the route layer stays free of branching.
    HTTP: 404 Not Found
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


class ConflictError(RemarketError):
    """
    Raised when a write collides with a unique constraint.

    When: duplicate user email, duplicate category code.
    HTTP: 409 Conflict
    """

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(RemarketError):
    """
    Raised when a database operation fails unexpectedly.

    HTTP: 500 Internal Server Error

    Security Note:
        The client always receives a generic message. The SQLAlchemy error
        (statement, constraint names) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(RemarketError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP: 429 Too Many Requests, with a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
