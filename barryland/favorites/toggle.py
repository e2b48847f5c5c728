"""Optimistic favorite/unfavorite with rollback."""

from __future__ import annotations

import logging

from barryland.client.errors import ApiError, NotFoundError
from barryland.client.http import BarrylandApiClient
from barryland.favorites.identifiers import is_canonical_id
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.state import (
    FavoritesState,
    FavoritesStore,
    SetError,
    ToggleOptimistic,
    ToggleRollback,
    ToggleSettled,
)

logger = logging.getLogger(__name__)

DEFAULT_TOGGLE_ERROR = "Erreur lors de la mise à jour des favoris"


class ToggleController:
    """Applies a favorite change to local state before the server confirms it."""

    def __init__(
        self,
        api: BarrylandApiClient,
        local_store: LocalFavoriteStore,
        cache: PropertyCache,
        store: FavoritesStore,
    ) -> None:
        self._api = api
        self._local_store = local_store
        self._cache = cache
        self._store = store

    async def _remember(self, property_id: str, favorite: bool) -> None:
        if favorite:
            await self._local_store.add(property_id)
        else:
            await self._local_store.remove(property_id)

    async def toggle(self, property_id: str) -> bool:
        """Flip the favorite state of ``property_id`` and return the new state.

        Ids that are not server-issued never leave the device.  For server ids
        a failed request restores this property's previous state and the error
        is re-raised, except for the "Propriété non trouvée" 404, which keeps
        the optimistic state and parks the id in the local outbox.
        """

        pid = str(property_id)
        self._store.dispatch(SetError(None))
        new_state = not self._cache.is_favorite(pid)

        if not is_canonical_id(pid):
            self._store.dispatch(ToggleOptimistic(pid, new_state))
            await self._remember(pid, new_state)
            return new_state

        snapshot = self._store.state
        self._store.dispatch(ToggleOptimistic(pid, new_state))

        try:
            result = await self._api.toggle_favorite(pid)
        except NotFoundError as exc:
            if not exc.is_property_not_found:
                self._rollback(pid, snapshot, exc)
                raise
            logger.info("Property %s not found by the favorites endpoint; keeping it locally", pid)
            await self._remember(pid, new_state)
            return new_state
        except Exception as exc:
            self._rollback(pid, snapshot, exc)
            raise

        self._store.dispatch(ToggleSettled(pid, result))
        final_state = result.is_favorite if result.is_favorite is not None else new_state
        # A settled id is confirmed server-side and must not stay pending.
        await self._local_store.remove(pid)
        return final_state

    def _rollback(self, property_id: str, snapshot: FavoritesState, exc: Exception) -> None:
        message = exc.message if isinstance(exc, ApiError) and exc.message else DEFAULT_TOGGLE_ERROR
        logger.error("Favorite toggle failed for %s: %s", property_id, exc)
        self._store.dispatch(ToggleRollback(property_id, snapshot, message))


__all__ = ["DEFAULT_TOGGLE_ERROR", "ToggleController"]
