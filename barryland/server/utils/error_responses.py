"""Builders for the structured error envelope returned by the reference server.

Each builder stamps the payload with the current request id and a UTC
timestamp so handlers only supply what went wrong.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from barryland.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from barryland.server.utils.request_context import get_request_id

__all__ = [
    "build_error_response",
    "build_validation_error_response",
    "error_type_for_status",
]

_STATUS_ERROR_TYPES: dict[int, ErrorType] = {
    400: ErrorType.BAD_REQUEST,
    401: ErrorType.AUTHENTICATION_ERROR,
    403: ErrorType.AUTHORIZATION_ERROR,
    404: ErrorType.NOT_FOUND,
    409: ErrorType.CONFLICT,
    422: ErrorType.VALIDATION_ERROR,
}


def _current_timestamp() -> datetime:
    return datetime.now(UTC)


def error_type_for_status(status_code: int) -> ErrorType:
    """Map an HTTP status onto the closest :class:`ErrorType`."""

    if status_code in _STATUS_ERROR_TYPES:
        return _STATUS_ERROR_TYPES[status_code]
    if 400 <= status_code < 500:
        return ErrorType.BAD_REQUEST
    return ErrorType.INTERNAL_ERROR


def build_validation_error_response(
    *,
    errors: Sequence[ValidationErrorDetail],
    message: str,
    detail: str,
    status_code: int,
    path: str,
    request_id: str | None = None,
) -> ValidationErrorResponse:
    return ValidationErrorResponse(
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id(),
        path=path,
        errors=list(errors),
    )


def build_error_response(
    *,
    message: str,
    status_code: int,
    path: str,
    detail: str | None = None,
    error_type: ErrorType | None = None,
    request_id: str | None = None,
) -> ErrorResponse:
    """Build an :class:`ErrorResponse`; ``error_type`` defaults from ``status_code``."""

    return ErrorResponse(
        error_type=error_type or error_type_for_status(status_code),
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        request_id=request_id or get_request_id(),
        path=path,
    )
