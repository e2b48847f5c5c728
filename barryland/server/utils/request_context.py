"""Per-request correlation id for the reference server.

A BarryLand front end may send its own ``X-Request-ID`` so that a failed
favorite toggle in the browser console can be matched with the server log
line; otherwise the middleware mints one.  Error envelopes built by
:mod:`barryland.server.utils.error_responses` read it back from here.
"""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar, Token

__all__ = [
    "REQUEST_ID_HEADER",
    "get_request_id",
    "reset_request_id",
    "resolve_request_id",
    "set_request_id",
]

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{8,64}")

_request_id: ContextVar[str] = ContextVar("barryland_request_id", default="")


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a well-formed client id, or generate a new uuid4."""

    candidate = (incoming or "").strip()
    if _ACCEPTED_REQUEST_ID.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


def set_request_id(request_id: str) -> Token[str]:
    return _request_id.set(request_id)


def get_request_id() -> str:
    """Return the active request id; empty outside a request."""

    return _request_id.get()


def reset_request_id(token: Token[str]) -> None:
    _request_id.reset(token)
