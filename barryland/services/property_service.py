"""Listing operations that keep the cached property lists in step with the API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from barryland.client.errors import ApiError
from barryland.client.http import BarrylandApiClient
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.state import (
    FavoritesStore,
    PropertyRemoved,
    PropertyUpserted,
    SetError,
    SetMyProperties,
    SetProperties,
    dedupe,
)
from barryland.schemas.property import Property, normalize_property, timestamp_id

logger = logging.getLogger(__name__)

NEW_PROPERTY_TITLE = "Nouvelle annonce"


def _local_record(data: Mapping[str, Any]) -> Property:
    """Build a client-only listing for data the server has not assigned an id to."""

    identifier = timestamp_id()
    document = dict(data)
    document.update(
        {
            "_id": identifier,
            "id": identifier,
            "title": data.get("title") or NEW_PROPERTY_TITLE,
            "description": data.get("description") or "",
            "category": data.get("category") or "maison",
            "owner": data.get("owner") or "Vous",
            "publisherType": data.get("publisherType") or "particulier",
            "status": data.get("status") or "pending",
            "contact": data.get("contact") or {"phone": "", "email": ""},
        }
    )
    return normalize_property(document)


class PropertyService:
    """Keeps ``properties`` and ``my_properties`` in :class:`FavoritesStore` current.

    Failures are recorded in the store's ``error`` field rather than raised,
    matching how the dashboard reports them.
    """

    def __init__(
        self,
        api: BarrylandApiClient,
        store: FavoritesStore,
        local_store: LocalFavoriteStore,
    ) -> None:
        self._api = api
        self._store = store
        self._local_store = local_store

    async def refresh_properties(self, filters: Mapping[str, Any] | None = None) -> list[Property]:
        """Reload the public listing, keeping cached records the server did not return."""

        try:
            fetched = await self._api.list_properties(filters)
        except ApiError as exc:
            logger.warning("Failed to refresh properties: %s", exc)
            return list(self._store.state.properties)

        merged = dedupe([*fetched, *self._store.state.properties])
        state = self._store.dispatch(SetProperties(merged))
        return list(state.properties)

    async def fetch_my_properties(self) -> list[Property]:
        self._store.dispatch(SetError(None))
        try:
            owned = await self._api.my_properties()
        except ApiError as exc:
            self._store.dispatch(
                SetError(exc.message or "Erreur lors du chargement des propriétés")
            )
            return list(self._store.state.my_properties)

        state = self._store.dispatch(SetMyProperties(tuple(owned)))
        return list(state.my_properties)

    def add_property(self, data: Mapping[str, Any]) -> Property:
        """Insert a listing into the cache.

        ``data`` carrying an id is treated as the server's record; anything
        else becomes a local draft awaiting moderation.  Only validated
        listings join the public list.
        """

        if data.get("_id") or data.get("id"):
            record = normalize_property(data)
        else:
            record = _local_record(data)
        self._store.dispatch(PropertyUpserted(record, public=record.is_public))
        return record

    async def create_property(self, data: Mapping[str, Any]) -> Property | None:
        """Submit a new listing and cache the server's copy."""

        self._store.dispatch(SetError(None))
        try:
            created = await self._api.create_property(data)
        except ApiError as exc:
            self._store.dispatch(SetError(exc.message or "Erreur lors de l'ajout de la propriété"))
            return None
        return self.add_property(created.to_payload())

    def _replace_cached(self, record: Property) -> None:
        state = self._store.state
        public = any(item.keys() & record.keys() for item in state.properties)
        self._store.dispatch(PropertyUpserted(record, public=public))

    async def update_property(self, property_id: str, data: Mapping[str, Any]) -> Property | None:
        self._store.dispatch(SetError(None))
        try:
            updated = await self._api.update_property(property_id, data)
        except ApiError as exc:
            self._store.dispatch(
                SetError(exc.message or "Erreur lors de la mise à jour de la propriété")
            )
            return None

        if updated is None:
            state = self._store.state
            existing = next(
                (
                    item
                    for item in (*state.properties, *state.my_properties)
                    if item.matches(property_id)
                ),
                None,
            )
            if existing is None:
                return None
            updated = normalize_property({**existing.to_payload(), **data})
        self._replace_cached(updated)

        try:
            canonical = await self._api.get_property(property_id)
        except ApiError as exc:
            logger.debug("Could not reload property %s after update: %s", property_id, exc)
            return updated
        self._replace_cached(canonical)
        return canonical

    async def delete_property(self, property_id: str) -> bool:
        """Delete on the server, then drop the listing from every cached list."""

        self._store.dispatch(SetError(None))
        try:
            await self._api.delete_property(property_id)
        except ApiError as exc:
            self._store.dispatch(SetError(exc.message or "Erreur lors de la suppression"))
            return False

        self._store.dispatch(PropertyRemoved(property_id))
        await self._local_store.remove(property_id)
        return True


__all__ = ["NEW_PROPERTY_TITLE", "PropertyService"]
