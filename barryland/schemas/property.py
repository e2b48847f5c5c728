"""Property records as the client renders them, plus the normalization rules
that turn raw API documents into that shape."""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_TITLE = "Annonce"

_PENDING_STATUSES = {"pending", "en_attente", "waiting"}
_VALIDATED_STATUSES = {"validee", "validated", "active"}
_REJECTED_STATUSES = {"rejetee", "rejected"}

PUBLIC_STATUSES = frozenset({"validee", "active"})


def timestamp_id() -> str:
    """Return the millisecond timestamp string used for locally created records."""

    return str(int(time.time() * 1000))


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Property(BaseModel):
    """A listing as held in the client's property cache.

    ``id`` is always populated.  ``object_id`` carries the document store's
    ``_id`` and ``external_id`` the optional legacy identifier; favorites may
    reference a property through any of the three.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    object_id: str | None = Field(None, alias="_id")
    external_id: str | None = Field(None, alias="externalId")
    title: str = PLACEHOLDER_TITLE
    description: str = ""
    type: Literal["vente", "location"] = "vente"
    category: str = "maison"
    price: float = 0
    location: str = ""
    area: float = 0
    bedrooms: int = 0
    bathrooms: int = 0
    images: list[str] = Field(default_factory=list)
    features: Any = Field(default_factory=list)
    owner: Any = ""
    publisher_type: str = Field("particulier", alias="publisherType")
    status: str = "en_attente"
    contact: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = Field(None, alias="createdAt")
    updated_at: str | None = Field(None, alias="updatedAt")
    favorites: int = Field(0, ge=0, description="Number of users who favorited the listing")
    is_favorite: bool = Field(False, alias="isFavorite")

    def keys(self) -> set[str]:
        """Return every identifier this record answers to."""

        candidates = (self.id, self.object_id, self.external_id)
        return {str(value) for value in candidates if value}

    def matches(self, identifier: str) -> bool:
        return str(identifier) in self.keys()

    @property
    def is_public(self) -> bool:
        return self.status in PUBLIC_STATUSES

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the API's camelCase document shape."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def placeholder_property(identifier: str, *, favorites: int = 0) -> Property:
    """Build the minimal record shown for a favorite we cannot resolve."""

    now = _now_iso()
    return Property(
        id=identifier,
        _id=identifier,
        title=PLACEHOLDER_TITLE,
        status="validee",
        contact={"phone": "", "email": ""},
        createdAt=now,
        updatedAt=now,
        favorites=favorites,
        isFavorite=True,
    )


def _as_number(value: Any, default: float = 0) -> float:
    try:
        return float(value) if value is not None and value != "" else default
    except (TypeError, ValueError):
        return default


def _as_int(value: Any) -> int:
    return int(_as_number(value))


def _normalize_images(images: Any) -> list[str]:
    if not isinstance(images, list):
        return []
    urls: list[str] = []
    for image in images:
        if isinstance(image, str):
            url = image
        elif isinstance(image, Mapping):
            url = image.get("url") or ""
        else:
            url = ""
        if url:
            urls.append(str(url))
    return urls


def _normalize_location(location: Any) -> str:
    if isinstance(location, str):
        return location
    if not isinstance(location, Mapping):
        return ""
    address = location.get("address")
    if address:
        return str(address)
    city = location.get("city")
    if not city:
        return ""
    region = location.get("region")
    return f"{city}, {region}" if region else str(city)


def normalize_status(value: Any) -> str:
    """Collapse the status synonyms used across the API onto moderation states."""

    status = str(value or "").lower()
    if status in _PENDING_STATUSES:
        return "en_attente"
    if status in _VALIDATED_STATUSES:
        return "validee"
    if status in _REJECTED_STATUSES:
        return "rejetee"
    return status or "en_attente"


def _normalize_type(raw: Mapping[str, Any]) -> str:
    declared = raw.get("type") or raw.get("transactionType") or raw.get("propertyType")
    if not declared:
        return "vente"
    lowered = str(declared).lower()
    return "location" if lowered == "location" or "loc" in lowered else "vente"


def _normalize_favorites_count(value: Any) -> int:
    # Populated user documents sometimes carry a list here instead of a count.
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0
    return max(0, _as_int(value))


def normalize_property(raw: Mapping[str, Any]) -> Property:
    """Convert a raw API property document into a :class:`Property`.

    Unknown keys are preserved as extras so callers can still reach fields this
    model does not declare.
    """

    fallback_id = timestamp_id()
    object_id = raw.get("_id") or raw.get("id") or fallback_id
    plain_id = raw.get("id") or raw.get("_id") or fallback_id

    document = dict(raw)
    document.update(
        {
            "id": str(plain_id),
            "_id": str(object_id),
            "images": _normalize_images(raw.get("images")),
            "type": _normalize_type(raw),
            "location": _normalize_location(raw.get("location")),
            "createdAt": raw.get("createdAt") or _now_iso(),
            "status": normalize_status(raw.get("status") or raw.get("propertyStatus")),
            "price": _as_number(raw.get("price")),
            "area": _as_number(raw.get("area")),
            "bedrooms": _as_int(raw.get("bedrooms")),
            "bathrooms": _as_int(raw.get("bathrooms")),
            "favorites": _normalize_favorites_count(raw.get("favorites")),
            "isFavorite": bool(raw.get("isFavorite", False)),
            "contact": raw.get("contact") if isinstance(raw.get("contact"), Mapping) else {},
        }
    )
    if raw.get("externalId") is not None:
        document["externalId"] = str(raw["externalId"])
    for optional_text in ("title", "description", "category", "publisherType"):
        if document.get(optional_text) is None:
            document.pop(optional_text, None)
    if document.get("owner") is None:
        document.pop("owner", None)
    if document.get("features") is None:
        document.pop("features", None)
    return Property.model_validate(document)


__all__ = [
    "PUBLIC_STATUSES",
    "PLACEHOLDER_TITLE",
    "Property",
    "normalize_property",
    "normalize_status",
    "placeholder_property",
    "timestamp_id",
]
