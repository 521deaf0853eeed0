"""Common exception helpers for the web layer."""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base exception for application specific errors."""

    status_code = 500
    error_code = "app_error"
    default_detail = "An unexpected error occurred."

    def __init__(self, detail: str | None = None, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail
        self.extra = extra or {}


class DomainError(AppError):
    """Normalized domain error surfaced to API handlers."""


class BadRequestError(DomainError):
    status_code = 400
    error_code = "bad_request"
    default_detail = "Invalid request."


class UnauthorizedError(DomainError):
    status_code = 401
    error_code = "unauthorized"
    default_detail = "Not authenticated."


class ForbiddenError(DomainError):
    status_code = 403
    error_code = "forbidden"
    default_detail = "Forbidden."


class NotFoundError(DomainError):
    status_code = 404
    error_code = "not_found"
    default_detail = "Resource not found."




class TooManyRequestsError(DomainError):
    status_code = 429
    error_code = "too_many_requests"
    default_detail = "Too many requests."


class BadGatewayError(DomainError):
    status_code = 502
    error_code = "bad_gateway"
    default_detail = "FTP server operation failed."
