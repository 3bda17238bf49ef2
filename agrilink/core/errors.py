"""
Domain errors raised by the service layer.

Hard failures (writes on conversations, messages and core participant rows)
surface as one of these; routers translate them into HTTP responses. Soft
failures (notifications, display-name enrichment) are logged where they
happen and never reach this module.
"""

from fastapi import HTTPException
from postgrest.exceptions import APIError


class MessagingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError):
    status_code = 400


class AuthenticationError(MessagingError):
    status_code = 401


class PermissionDenied(MessagingError):
    status_code = 403


class NotFoundError(MessagingError):
    status_code = 404


class StoreError(MessagingError):
    """A Supabase/PostgREST call failed. `message` is safe to show to clients."""

    status_code = 500

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause
        self.code = getattr(cause, "code", None)

    def __str__(self):
        if isinstance(self.cause, APIError):
            return f"{self.message}: {self.cause.message}"
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


def store_error(message: str, error: Exception) -> MessagingError:
    """Wrap a raw client error, leaving domain errors untouched."""
    if isinstance(error, MessagingError):
        return error
    return StoreError(message, error)


def to_http(error: MessagingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)
