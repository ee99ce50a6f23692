"""
core/errors.py — Error taxonomy shared by the core services and the API layer.

Every error carries an HTTP status and a machine-readable code; the API layer
renders them with ``api.errors.error_response``.
"""
from __future__ import annotations


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, code: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if code:
            self.code = code


class InvalidInput(ApiError):
    status_code = 400
    code = "INVALID_INPUT"
    default_message = "Invalid input."


class Unauthenticated(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Not authenticated"


class Forbidden(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFound(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found."


class Conflict(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflict."


class Gone(ApiError):
    status_code = 410
    code = "GONE"
    default_message = "This endpoint is no longer available."


class RateLimited(ApiError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests."


class Internal(ApiError):
    pass
