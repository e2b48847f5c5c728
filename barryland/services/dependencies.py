"""Wiring for a complete BarryLand client.

Keeping construction here leaves the service modules free of configuration
concerns, so tests can assemble the same graph around fake transports and
in-memory storage.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from barryland.client.http import BarrylandApiClient
from barryland.events import SessionEventBus
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.reconciler import FavoritesReconciler
from barryland.favorites.state import FavoritesStore
from barryland.favorites.toggle import ToggleController
from barryland.services.favorites_service import FavoritesService
from barryland.services.message_service import MessageService
from barryland.services.property_service import PropertyService
from barryland.session import SessionManager
from barryland.settings import AppSettings, get_settings
from barryland.storage import ClientStorage, get_client_storage


@dataclass
class BarrylandClient:
    """Every collaborator of one client instance (one device or browser)."""

    settings: AppSettings
    api: BarrylandApiClient
    storage: ClientStorage
    events: SessionEventBus
    session: SessionManager
    store: FavoritesStore
    local_favorites: LocalFavoriteStore
    favorites: FavoritesService
    messages: MessageService

    async def aclose(self) -> None:
        self.favorites.close()
        await self.api.aclose()


async def create_client(
    settings: AppSettings | None = None,
    *,
    storage: ClientStorage | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BarrylandClient:
    """Build a client from ``settings`` and restore any persisted session.

    ``storage`` and ``transport`` override the configured Redis backend and
    the network transport respectively.
    """

    settings = settings or get_settings()
    if storage is None:
        storage = await get_client_storage(
            settings.redis_url, namespace=settings.storage_namespace
        )

    api = BarrylandApiClient(
        settings.normalized_api_base_url,
        timeout=settings.request_timeout_seconds,
        transport=transport,
    )
    events = SessionEventBus()
    session = SessionManager(api, storage, events)
    await session.restore()

    store = FavoritesStore()
    cache = PropertyCache(store)
    local_favorites = LocalFavoriteStore(storage)
    reconciler = FavoritesReconciler(
        api,
        session,
        local_favorites,
        cache,
        store,
        clear_unsynced_on_login=settings.clear_unsynced_on_login,
    )
    favorites = FavoritesService(
        events=events,
        store=store,
        cache=cache,
        local_store=local_favorites,
        reconciler=reconciler,
        toggler=ToggleController(api, local_favorites, cache, store),
        properties=PropertyService(api, store, local_favorites),
    )
    return BarrylandClient(
        settings=settings,
        api=api,
        storage=storage,
        events=events,
        session=session,
        store=store,
        local_favorites=local_favorites,
        favorites=favorites,
        messages=MessageService(api),
    )


__all__ = ["BarrylandClient", "create_client"]
