"""Lookups over the cached property lists held by :class:`FavoritesStore`."""

from __future__ import annotations

from collections.abc import Iterable

from barryland.favorites.identifiers import is_canonical_id
from barryland.favorites.state import FavoritesStore
from barryland.schemas.property import Property, placeholder_property


class PropertyCache:
    """Read-only view used to hydrate favorite ids into displayable records."""

    def __init__(self, store: FavoritesStore) -> None:
        self._store = store

    def find(self, identifier: str) -> Property | None:
        """Search the public listing first, then the user's own listings."""

        key = str(identifier)
        state = self._store.state
        for collection in (state.properties, state.my_properties):
            for item in collection:
                if item.matches(key):
                    return item
        return None

    def resolve(self, identifiers: Iterable[str]) -> list[Property]:
        """Turn favorite ids into records flagged ``isFavorite``; unknown ids get placeholders."""

        resolved: list[Property] = []
        for identifier in identifiers:
            found = self.find(identifier)
            if found is None:
                resolved.append(placeholder_property(str(identifier)))
            else:
                resolved.append(found.model_copy(update={"is_favorite": True}))
        return resolved

    def canonical_id(self, identifier: str) -> str | None:
        """Map ``identifier`` to a server id, or ``None`` when no mapping exists."""

        if is_canonical_id(identifier):
            return identifier
        found = self.find(identifier)
        if found is None:
            return None
        for candidate in (found.object_id, found.id):
            if candidate and is_canonical_id(candidate):
                return candidate
        return None

    def is_favorite(self, identifier: str) -> bool:
        """Membership in the favorites list or a cached ``isFavorite`` flag."""

        key = str(identifier)
        state = self._store.state
        if any(item.matches(key) for item in state.favorites):
            return True
        return any(
            item.matches(key) and item.is_favorite
            for item in (*state.properties, *state.my_properties)
        )


__all__ = ["PropertyCache"]
