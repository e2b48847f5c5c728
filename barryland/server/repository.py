"""In-memory document store backing the reference server.

Documents are plain dictionaries keyed by 24-character hexadecimal ``_id``
values, mirroring the shape the production document database returns.
Every read hands out a deep copy so route handlers can decorate responses
freely.
"""

from __future__ import annotations

import copy
import logging
import secrets
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from barryland.schemas.property import normalize_status

logger = logging.getLogger(__name__)

_PUBLIC_STATUSES = {"validee", "active"}


def new_object_id() -> str:
    """Return a fresh 24-character hexadecimal identifier."""

    return secrets.token_hex(12)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _city_of(document: Mapping[str, Any]) -> str:
    location = document.get("location")
    if isinstance(location, Mapping):
        return " ".join(str(location.get(key) or "") for key in ("city", "address"))
    return str(location or "")


def _matches_filters(document: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    transaction = filters.get("transactionType")
    if transaction and transaction not in (document.get("transactionType"), document.get("type")):
        return False
    property_type = filters.get("propertyType")
    if property_type and property_type not in (document.get("propertyType"), document.get("category")):
        return False
    city = filters.get("city")
    if city and str(city).lower() not in _city_of(document).lower():
        return False
    price = float(document.get("price") or 0)
    if filters.get("minPrice") is not None and price < float(filters["minPrice"]):
        return False
    if filters.get("maxPrice") is not None and price > float(filters["maxPrice"]):
        return False
    status = filters.get("status")
    current = normalize_status(document.get("status"))
    if status:
        return current == normalize_status(status)
    return current in _PUBLIC_STATUSES


class DocumentStore:
    """Users, properties and contact messages for one server instance."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.properties: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, dict[str, Any]] = {}

    # -- users ------------------------------------------------------------------

    def create_user(self, data: Mapping[str, Any], password_hash: str) -> dict[str, Any]:
        user_id = new_object_id()
        document = {
            "_id": user_id,
            "firstName": data.get("firstName", ""),
            "lastName": data.get("lastName", ""),
            "email": str(data["email"]).strip().lower(),
            "phone": data.get("phone", ""),
            "password": password_hash,
            "role": data.get("role", "user"),
            "isVerified": bool(data.get("isVerified", True)),
            "favorites": [],
            "createdAt": _now(),
        }
        self.users[user_id] = document
        return copy.deepcopy(document)

    def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        wanted = email.strip().lower()
        for document in self.users.values():
            if document["email"] == wanted:
                return copy.deepcopy(document)
        return None

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        document = self.users.get(user_id)
        return copy.deepcopy(document) if document else None

    def public_profile(self, user_id: str, *, populate_favorites: bool = True) -> dict[str, Any] | None:
        """Return the user without the password hash, favorites populated."""

        document = self.get_user(user_id)
        if document is None:
            return None
        document.pop("password", None)
        document["id"] = document["_id"]
        if populate_favorites:
            document["favorites"] = [
                copy.deepcopy(self.properties[favorite_id])
                for favorite_id in document["favorites"]
                if favorite_id in self.properties
            ]
        return document

    # -- properties -------------------------------------------------------------

    def list_properties(
        self,
        filters: Mapping[str, Any],
        *,
        page: int = 1,
        limit: int = 12,
    ) -> tuple[list[dict[str, Any]], int]:
        matching = [doc for doc in self.properties.values() if _matches_filters(doc, filters)]
        matching.sort(key=lambda doc: doc.get("createdAt") or "", reverse=True)
        start = max(page - 1, 0) * limit
        return copy.deepcopy(matching[start : start + limit]), len(matching)

    def properties_owned_by(self, user_id: str) -> list[dict[str, Any]]:
        owned = [doc for doc in self.properties.values() if doc.get("owner") == user_id]
        owned.sort(key=lambda doc: doc.get("createdAt") or "", reverse=True)
        return copy.deepcopy(owned)

    def get_property(self, property_id: str) -> dict[str, Any] | None:
        document = self.properties.get(property_id)
        return copy.deepcopy(document) if document else None

    def create_property(self, owner_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        property_id = new_object_id()
        now = _now()
        document = {
            **dict(data),
            "_id": property_id,
            "owner": owner_id,
            "status": "en_attente",
            "favorites": 0,
            "createdAt": now,
            "updatedAt": now,
        }
        self.properties[property_id] = document
        logger.info("Created property %s for owner %s", property_id, owner_id)
        return copy.deepcopy(document)

    def update_property(self, property_id: str, data: Mapping[str, Any]) -> dict[str, Any] | None:
        document = self.properties.get(property_id)
        if document is None:
            return None
        protected = {"_id", "owner", "favorites", "createdAt"}
        document.update({key: value for key, value in data.items() if key not in protected})
        document["updatedAt"] = _now()
        return copy.deepcopy(document)

    def delete_property(self, property_id: str) -> bool:
        if self.properties.pop(property_id, None) is None:
            return False
        for user in self.users.values():
            if property_id in user["favorites"]:
                user["favorites"].remove(property_id)
        return True

    def set_property_status(self, property_id: str, status: str) -> None:
        self.properties[property_id]["status"] = status

    def toggle_favorite(self, user_id: str, property_id: str) -> tuple[bool, int]:
        """Flip ``property_id`` in the user's favorites; return ``(is_favorite, count)``."""

        user = self.users[user_id]
        document = self.properties[property_id]
        if property_id in user["favorites"]:
            user["favorites"].remove(property_id)
            document["favorites"] = max(0, int(document.get("favorites") or 0) - 1)
            return False, document["favorites"]
        user["favorites"].append(property_id)
        document["favorites"] = int(document.get("favorites") or 0) + 1
        return True, document["favorites"]

    # -- messages ---------------------------------------------------------------

    def create_message(self, property_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        message_id = new_object_id()
        document = {
            **dict(data),
            "_id": message_id,
            "property": property_id,
            "owner": self.properties[property_id].get("owner"),
            "status": "nouveau",
            "read": False,
            "createdAt": _now(),
        }
        self.messages[message_id] = document
        return copy.deepcopy(document)

    def messages_for_owner(
        self,
        owner_id: str,
        *,
        property_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        selected = [
            doc
            for doc in self.messages.values()
            if doc.get("owner") == owner_id
            and (property_id is None or doc.get("property") == property_id)
            and (status is None or doc.get("status") == status)
        ]
        selected.sort(key=lambda doc: doc["createdAt"], reverse=True)
        return copy.deepcopy(selected)

    def get_message(self, message_id: str) -> dict[str, Any] | None:
        document = self.messages.get(message_id)
        return copy.deepcopy(document) if document else None

    def update_message(self, message_id: str, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        document = self.messages.get(message_id)
        if document is None:
            return None
        document.update(changes)
        return copy.deepcopy(document)


__all__ = ["DocumentStore", "new_object_id"]
