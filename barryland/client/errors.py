"""Exception hierarchy raised by :class:`barryland.client.http.BarrylandApiClient`.

Callers branch on the class rather than on raw status codes:

* :class:`UnauthorizedError` - expected for anonymous visitors, handled silently.
* :class:`InvalidIdentifierError` / :class:`NotFoundError` - permanent; a
  pending favorite that hits one of these is dropped.
* :class:`TransientApiError` - network failures and server errors; pending
  favorites stay queued for a later attempt.
"""

from __future__ import annotations

from typing import Any

PROPERTY_NOT_FOUND_MESSAGE = "Propriété non trouvée"


class ApiError(Exception):
    """Base class for every failure reported by the BarryLand API client."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def permanent(self) -> bool:
        """``True`` when retrying the same request cannot succeed."""

        return False


class UnauthorizedError(ApiError):
    """HTTP 401: the session token is missing, expired or invalid."""


class ForbiddenError(ApiError):
    """HTTP 403: authenticated but not allowed (e.g. editing someone else's listing)."""

    @property
    def permanent(self) -> bool:
        return True


class InvalidIdentifierError(ApiError):
    """HTTP 400: the server rejected the request, typically a malformed id."""

    @property
    def permanent(self) -> bool:
        return True


class NotFoundError(ApiError):
    """HTTP 404."""

    @property
    def permanent(self) -> bool:
        return True

    @property
    def is_property_not_found(self) -> bool:
        """Whether the server reported the specific missing-property message."""

        return PROPERTY_NOT_FOUND_MESSAGE.lower() in (self.message or "").lower()


class TransientApiError(ApiError):
    """Failure that may succeed on retry."""


class ServerError(TransientApiError):
    """HTTP 5xx, or any status the client has no specific mapping for."""


class NetworkError(TransientApiError):
    """The request never produced an HTTP response (connection error, timeout)."""


_STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: InvalidIdentifierError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
}


def error_for_status(status_code: int, message: str, payload: Any = None) -> ApiError:
    """Instantiate the exception class matching ``status_code``."""

    error_class = _STATUS_ERRORS.get(status_code, ServerError)
    return error_class(message, status_code=status_code, payload=payload)


__all__ = [
    "ApiError",
    "ForbiddenError",
    "InvalidIdentifierError",
    "NetworkError",
    "NotFoundError",
    "PROPERTY_NOT_FOUND_MESSAGE",
    "ServerError",
    "TransientApiError",
    "UnauthorizedError",
    "error_for_status",
]
