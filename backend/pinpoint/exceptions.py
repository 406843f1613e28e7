"""
Pinpoint Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions, one per failure class the API reports.
How:   Each exception carries a user-facing message and a private context dict.
       Global handlers in main.py map them to status codes and JSON bodies.
Who:   Raised by security helpers, services and routes.

Exception Hierarchy:
    PinpointError (base)
    ├── ValidationError          → 400 Bad Request
    │   └── InvalidInputError    → 400 (credential hasher input)
    ├── AuthError                → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── DuplicateKeyError        → 409 Conflict
    ├── SigningError             → 500 Internal Server Error
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error

Authentication failures inside the token codec never become exceptions;
they surface as "no user", and only routes that require a user raise
AuthError.
"""

from typing import Any, Dict, Optional


class PinpointError(Exception):
    """
    Base exception for all Pinpoint application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client
                  for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PinpointError):
    """
    Raised when input is malformed, missing, or references an entity that
    does not exist.

    HTTP: 400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Image 'c0ffee…' does not exist",
            "details": {"field": "imageId"}
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


class InvalidInputError(ValidationError):
    """Raised by the credential hasher for an empty or non-text password or a bad salt."""


class AuthError(PinpointError):
    """
    Raised when a request needs an authenticated user and has none, or when
    sign-in credentials are wrong.

    HTTP: 401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SignInError(AuthError):
    """Wrong username or password on sign-in."""

    def __init__(self, username: str):
        super().__init__(
            message=(
                f"Could not sign-in, The username '{username}' or password is incorrect."
            ),
            context={"username": username},
        )


class ForbiddenError(PinpointError):
    """
    Raised when an authenticated user mutates something they do not own.

    HTTP: 403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not have permission to modify this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PinpointError):
    """
    Raised when the target of an operation does not exist.

    HTTP: 404 Not Found

    Malformed ids in a URL path are reported as NotFoundError too: an id
    that cannot exist is indistinguishable from one that does not.
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


class DuplicateKeyError(PinpointError):
    """
    Raised when a unique index rejects an insert.

    HTTP: 409 Conflict

    Only the database decides: the store never checks-then-writes, so two
    concurrent sign-ups for one username resolve to exactly one success.
    """

    def __init__(
        self,
        field: str,
        value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"A record with this {field} already exists"
        if value:
            message = f"{field} '{value}' is already taken"
        ctx = context or {}
        ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class SigningError(PinpointError):
    """
    Raised when a session token cannot be signed (missing or malformed secret).

    HTTP: 500 Internal Server Error. A user row without a valid derived key
    is a data-integrity problem, not a client error.
    """

    def __init__(
        self,
        message: str = "Could not sign session token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(PinpointError):
    """
    Raised when writing an uploaded image blob fails.

    HTTP: 500 Internal Server Error. File system paths stay in the context
    and are only logged.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PinpointError):
    """
    Raised when a database operation fails unexpectedly.

    HTTP: 500 Internal Server Error. The client always gets a generic
    message; constraint names and SQL are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
