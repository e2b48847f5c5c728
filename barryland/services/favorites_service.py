"""Facade the UI layer talks to for listings and favorites.

Collaborators:
* :class:`FavoritesReconciler` - merged favorites list, login sync and retry.
* :class:`LocalFavoriteStore` - outbox whose changes trigger a retry.
* :class:`ToggleController` - optimistic favorite/unfavorite.
* :class:`PropertyService` - listing refresh and owner CRUD.

The facade wires session events to the reconciler on :meth:`start` and
exposes the current :class:`FavoritesState` for rendering.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from barryland.events import LoginEvent, LogoutEvent, SessionEventBus
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.reconciler import FavoritesReconciler
from barryland.favorites.state import FavoritesState, FavoritesStore
from barryland.favorites.toggle import ToggleController
from barryland.schemas.favorites import LoginSyncReport
from barryland.schemas.property import Property
from barryland.services.property_service import PropertyService

logger = logging.getLogger(__name__)


class FavoritesService:
    """Coordinates reconciliation, toggling and listing refreshes."""

    def __init__(
        self,
        *,
        events: SessionEventBus,
        store: FavoritesStore,
        cache: PropertyCache,
        local_store: LocalFavoriteStore,
        reconciler: FavoritesReconciler,
        toggler: ToggleController,
        properties: PropertyService,
    ) -> None:
        self._events = events
        self._store = store
        self._cache = cache
        self._local_store = local_store
        self._reconciler = reconciler
        self._toggler = toggler
        self._properties = properties
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def events(self) -> SessionEventBus:
        return self._events

    @property
    def state(self) -> FavoritesState:
        return self._store.state

    @property
    def favorites(self) -> list[Property]:
        return list(self._store.state.favorites)

    @property
    def properties(self) -> list[Property]:
        return list(self._store.state.properties)

    @property
    def my_properties(self) -> list[Property]:
        return list(self._store.state.my_properties)

    @property
    def error(self) -> str | None:
        return self._store.state.error

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    async def _on_login(self, event: LoginEvent) -> LoginSyncReport:
        return await self._reconciler.sync_on_login(event)

    async def _on_logout(self, event: LogoutEvent) -> None:
        await self._reconciler.handle_logout(event)

    async def _on_outbox_change(self, live_ids: list[str]) -> None:
        if live_ids:
            await self._reconciler.retry_pending()

    async def start(self) -> None:
        """Subscribe to session and outbox events, then load listings and favorites.

        Once started, every change to the set of pending ids triggers
        :meth:`FavoritesReconciler.retry_pending`.
        """

        if not self._unsubscribers:
            self._unsubscribers = [
                self._events.subscribe(LoginEvent, self._on_login),
                self._events.subscribe(LogoutEvent, self._on_logout),
                self._local_store.subscribe(self._on_outbox_change),
            ]
        # Listings first so locally stored ids resolve to full records.
        await self._properties.refresh_properties()
        await self._reconciler.fetch_favorites(skip_auth_redirect=True)
        await self._reconciler.retry_pending()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def is_favorite(self, property_id: str) -> bool:
        return self._cache.is_favorite(property_id)

    async def toggle_favorite(self, property_id: str) -> bool:
        return await self._toggler.toggle(property_id)

    async def fetch_favorites(self, skip_auth_redirect: bool = False) -> list[Property]:
        return await self._reconciler.fetch_favorites(skip_auth_redirect=skip_auth_redirect)

    async def retry_pending(self) -> LoginSyncReport:
        return await self._reconciler.retry_pending()

    async def refresh_properties(self, filters: Mapping[str, Any] | None = None) -> list[Property]:
        return await self._properties.refresh_properties(filters)

    async def fetch_my_properties(self) -> list[Property]:
        return await self._properties.fetch_my_properties()

    def add_property(self, data: Mapping[str, Any]) -> Property:
        return self._properties.add_property(data)

    async def create_property(self, data: Mapping[str, Any]) -> Property | None:
        return await self._properties.create_property(data)

    async def update_property(self, property_id: str, data: Mapping[str, Any]) -> Property | None:
        return await self._properties.update_property(property_id, data)

    async def delete_property(self, property_id: str) -> bool:
        return await self._properties.delete_property(property_id)


__all__ = ["FavoritesService"]
