"""Favorites reconciliation: local outbox, state store, reconciler and toggle."""

from barryland.favorites.identifiers import is_canonical_id, normalize_ids
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.reconciler import FavoritesReconciler
from barryland.favorites.state import ActionType, FavoritesState, FavoritesStore, reduce
from barryland.favorites.toggle import ToggleController

__all__ = [
    "ActionType",
    "FavoritesReconciler",
    "FavoritesState",
    "FavoritesStore",
    "LocalFavoriteStore",
    "PropertyCache",
    "ToggleController",
    "is_canonical_id",
    "normalize_ids",
    "reduce",
]
