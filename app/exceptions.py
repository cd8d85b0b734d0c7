"""
Venue Gallery Backend — Custom Exception Hierarchy
===================================================

What:  Defines application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the standard JSON envelope with the matching HTTP status code.
Who:   Raised by services and gateways; caught by global handlers.

Exception Hierarchy:
    GalleryError (base)
    ├── ValidationError   → 400 Bad Request (field-level detail list)
    ├── NotFoundError     → 404 Not Found
    ├── ConflictError     → 409 Conflict (duplicate unique key)
    ├── AssetHostError    → 500 (remote image host failure)
    └── DatabaseError     → 500 (message never reveals query details)

    Anything else reaching the handlers is "unclassified" and answered with
    a 500 whose detail is only shown in development mode.
"""

from typing import Any, Dict, List, Optional


class GalleryError(Exception):
    """
    Base exception for all gallery application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(GalleryError):
    """
    Raised when client input fails validation.

    HTTP:    400 Bad Request

    Carries a list of ``{"field": ..., "message": ...}`` entries. A single
    ``field`` argument is shorthand for a one-entry list.

    Example response:
        {
            "success": false,
            "message": "Validation failed",
            "errors": [{"field": "tags", "message": "Each tag cannot exceed 30 characters"}]
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        if errors is None and field:
            errors = [{"field": field, "message": message}]
        self.errors = errors or []


class NotFoundError(GalleryError):
    """
    Raised when a requested resource does not exist.

    When:    GET /api/images/{id} with a well-formed but unknown id.
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
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ConflictError(GalleryError):
    """
    Raised when a write would violate a uniqueness rule.

    When:    Creating or renaming a category to a name that already exists
             (names are compared after trimming and lowercasing).
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AssetHostError(GalleryError):
    """
    Raised when a call to the remote image host fails.

    HTTP:    500 Internal Server Error

    Best-effort call sites (category cascade cleanup, folder removal,
    orphan cleanup after a failed insert) log this error and continue.
    Everywhere else it propagates unchanged.
    """

    def __init__(
        self,
        message: str = "The image hosting service could not complete the request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(GalleryError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; the original
    error type and operation are kept in ``context`` for the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
