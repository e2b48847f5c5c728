"""Schemas for favorites toggling and the pending-favorites outbox."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from barryland.schemas.property import Property


class FavoriteToggleResult(BaseModel):
    """Payload returned by ``POST /properties/{id}/favorite``.

    The server may answer with a full property document, with counters only,
    or (for older deployments) with neither; every field is therefore optional.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_favorite: bool | None = Field(None, alias="isFavorite")
    favorites_count: int | None = Field(None, alias="favoritesCount", ge=0)
    property: Property | None = None


class OutboxStatus(str, Enum):
    """Lifecycle of an identifier waiting in the local favorites outbox."""

    PENDING = "pending"
    SYNCING = "syncing"
    DROPPED = "dropped"


class OutboxEntry(BaseModel):
    id: str = Field(..., min_length=1)
    status: OutboxStatus = OutboxStatus.PENDING


class LoginSyncReport(BaseModel):
    """Summary of one login-triggered synchronization round."""

    confirmed: list[str] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    favorites: list[Property] = Field(default_factory=list)


def favorite_identifier(entry: Any) -> str | None:
    """Return the identifier of a server favorite (bare id or populated document)."""

    if isinstance(entry, str):
        return entry or None
    if isinstance(entry, Property):
        return entry.object_id or entry.id
    if isinstance(entry, dict):
        value = entry.get("_id") or entry.get("id")
        return str(value) if value else None
    return None


__all__ = [
    "FavoriteToggleResult",
    "LoginSyncReport",
    "OutboxEntry",
    "OutboxStatus",
    "favorite_identifier",
]
