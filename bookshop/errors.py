"""
Domain errors raised by the service layer.

Each error carries the HTTP status the boundary should answer with; the
handlers registered in ``main.py`` turn them into
``{"success": false, "error": ...}`` envelopes.
"""

from fastapi import status


class BookshopError(Exception):
    """Base class for expected, client-facing failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookshopError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class Conflict(BookshopError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class NotFound(BookshopError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Forbidden(BookshopError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to modify this resource"


class Unauthorized(BookshopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired access token"


class InvalidCredentials(BookshopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class InvalidToken(BookshopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid refresh token"


class InvalidCode(BookshopError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired code"


class PreconditionFailed(BookshopError):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    default_message = "Password reset was not requested"


class ExternalServiceError(BookshopError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "External service error"
