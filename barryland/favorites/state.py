"""Reducer-driven state for properties, the user's listings and favorites.

Every mutation is expressed as an action and applied by the pure
:func:`reduce` function.  :class:`FavoritesStore` applies actions to the
latest state synchronously, so concurrent coroutines never overwrite each
other's updates with a stale copy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from barryland.schemas.favorites import FavoriteToggleResult
from barryland.schemas.property import Property, placeholder_property

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FavoritesState:
    properties: tuple[Property, ...] = ()
    my_properties: tuple[Property, ...] = ()
    favorites: tuple[Property, ...] = ()
    error: str | None = None

    def favorite_keys(self) -> set[str]:
        keys: set[str] = set()
        for favorite in self.favorites:
            keys |= favorite.keys()
        return keys


class ActionType(str, Enum):
    TOGGLE_OPTIMISTIC = "TOGGLE_OPTIMISTIC"
    TOGGLE_SETTLED = "TOGGLE_SETTLED"
    TOGGLE_ROLLBACK = "TOGGLE_ROLLBACK"
    SYNC_MERGE = "SYNC_MERGE"
    SET_PROPERTIES = "SET_PROPERTIES"
    SET_MY_PROPERTIES = "SET_MY_PROPERTIES"
    PROPERTY_UPSERTED = "PROPERTY_UPSERTED"
    PROPERTY_REMOVED = "PROPERTY_REMOVED"
    SET_ERROR = "SET_ERROR"


@dataclass(frozen=True)
class ToggleOptimistic:
    property_id: str
    new_state: bool
    type: ActionType = field(default=ActionType.TOGGLE_OPTIMISTIC, init=False)


@dataclass(frozen=True)
class ToggleSettled:
    property_id: str
    result: FavoriteToggleResult
    type: ActionType = field(default=ActionType.TOGGLE_SETTLED, init=False)


@dataclass(frozen=True)
class ToggleRollback:
    property_id: str
    snapshot: FavoritesState
    error: str | None = None
    type: ActionType = field(default=ActionType.TOGGLE_ROLLBACK, init=False)


@dataclass(frozen=True)
class SyncMerge:
    favorites: tuple[Property, ...]
    type: ActionType = field(default=ActionType.SYNC_MERGE, init=False)


@dataclass(frozen=True)
class SetProperties:
    properties: tuple[Property, ...]
    type: ActionType = field(default=ActionType.SET_PROPERTIES, init=False)


@dataclass(frozen=True)
class SetMyProperties:
    properties: tuple[Property, ...]
    type: ActionType = field(default=ActionType.SET_MY_PROPERTIES, init=False)


@dataclass(frozen=True)
class PropertyUpserted:
    property: Property
    public: bool
    type: ActionType = field(default=ActionType.PROPERTY_UPSERTED, init=False)


@dataclass(frozen=True)
class PropertyRemoved:
    property_id: str
    type: ActionType = field(default=ActionType.PROPERTY_REMOVED, init=False)


@dataclass(frozen=True)
class SetError:
    message: str | None
    type: ActionType = field(default=ActionType.SET_ERROR, init=False)


Action = (
    ToggleOptimistic
    | ToggleSettled
    | ToggleRollback
    | SyncMerge
    | SetProperties
    | SetMyProperties
    | PropertyUpserted
    | PropertyRemoved
    | SetError
)


def _find(items: Iterable[Property], identifier: str) -> Property | None:
    return next((item for item in items if item.matches(identifier)), None)


def _without(items: Iterable[Property], identifier: str) -> tuple[Property, ...]:
    return tuple(item for item in items if not item.matches(identifier))


def dedupe(items: Iterable[Property]) -> tuple[Property, ...]:
    """Drop later records that share any identifier with an earlier one."""

    seen: set[str] = set()
    unique: list[Property] = []
    for item in items:
        keys = item.keys()
        if keys & seen:
            continue
        seen |= keys
        unique.append(item)
    return tuple(unique)


def _mark_favorites(items: Iterable[Property], favorite_keys: set[str]) -> tuple[Property, ...]:
    marked: list[Property] = []
    for item in items:
        flag = bool(item.keys() & favorite_keys)
        marked.append(item if item.is_favorite == flag else item.model_copy(update={"is_favorite": flag}))
    return tuple(marked)


def _bump(item: Property, new_state: bool) -> Property:
    count = max(0, item.favorites + (1 if new_state else -1))
    return item.model_copy(update={"favorites": count, "is_favorite": new_state})


def _toggle_optimistic(state: FavoritesState, action: ToggleOptimistic) -> FavoritesState:
    pid = action.property_id
    properties = tuple(_bump(p, action.new_state) if p.matches(pid) else p for p in state.properties)
    my_properties = tuple(
        _bump(p, action.new_state) if p.matches(pid) else p for p in state.my_properties
    )
    remaining = _without(state.favorites, pid)
    if action.new_state:
        found = _find(properties, pid) or _find(my_properties, pid)
        entry = found or placeholder_property(pid, favorites=1)
        favorites = (entry, *remaining)
    else:
        favorites = remaining
    return replace(state, properties=properties, my_properties=my_properties, favorites=favorites)


def _toggle_settled(state: FavoritesState, action: ToggleSettled) -> FavoritesState:
    pid = action.property_id
    result = action.result

    if result.property is not None:
        flag = result.is_favorite if result.is_favorite is not None else result.property.is_favorite
        update: dict[str, object] = {"is_favorite": flag}
        if result.favorites_count is not None:
            update["favorites"] = result.favorites_count
        canonical = result.property.model_copy(update=update)
        properties = tuple(canonical if p.matches(pid) else p for p in state.properties)
        my_properties = tuple(canonical if p.matches(pid) else p for p in state.my_properties)
        remaining = _without(state.favorites, pid)
        favorites = (canonical, *remaining) if flag else remaining
        return replace(state, properties=properties, my_properties=my_properties, favorites=favorites)

    def merge(item: Property) -> Property:
        update: dict[str, object] = {}
        if result.favorites_count is not None:
            update["favorites"] = result.favorites_count
        if result.is_favorite is not None:
            update["is_favorite"] = result.is_favorite
        return item.model_copy(update=update) if update else item

    properties = tuple(merge(p) if p.matches(pid) else p for p in state.properties)
    my_properties = tuple(merge(p) if p.matches(pid) else p for p in state.my_properties)
    favorites = state.favorites
    if result.is_favorite is True:
        found = _find(properties, pid) or _find(my_properties, pid)
        if found is not None:
            favorites = (found, *_without(favorites, pid))
        else:
            favorites = tuple(merge(f) if f.matches(pid) else f for f in favorites)
    elif result.is_favorite is False:
        favorites = _without(favorites, pid)
    return replace(state, properties=properties, my_properties=my_properties, favorites=favorites)


def _restore(current: tuple[Property, ...], previous: tuple[Property, ...], pid: str) -> tuple[Property, ...]:
    before = _find(previous, pid)
    if before is None:
        return current
    return tuple(before if item.matches(pid) else item for item in current)


def _toggle_rollback(state: FavoritesState, action: ToggleRollback) -> FavoritesState:
    pid = action.property_id
    snapshot = action.snapshot
    favorites = list(_without(state.favorites, pid))
    for index, item in enumerate(snapshot.favorites):
        if item.matches(pid):
            favorites.insert(min(index, len(favorites)), item)
            break
    return replace(
        state,
        properties=_restore(state.properties, snapshot.properties, pid),
        my_properties=_restore(state.my_properties, snapshot.my_properties, pid),
        favorites=tuple(favorites),
        error=action.error,
    )


def _sync_merge(state: FavoritesState, action: SyncMerge) -> FavoritesState:
    favorites = dedupe(action.favorites)
    keys: set[str] = set()
    for favorite in favorites:
        keys |= favorite.keys()
    return replace(
        state,
        favorites=favorites,
        properties=_mark_favorites(state.properties, keys),
        my_properties=_mark_favorites(state.my_properties, keys),
    )


def _upsert(items: tuple[Property, ...], record: Property) -> tuple[Property, ...]:
    if any(item.keys() & record.keys() for item in items):
        return tuple(record if item.keys() & record.keys() else item for item in items)
    return (record, *items)


def reduce(state: FavoritesState, action: Action) -> FavoritesState:
    """Return the state that results from applying ``action`` to ``state``."""

    if isinstance(action, ToggleOptimistic):
        return _toggle_optimistic(state, action)
    if isinstance(action, ToggleSettled):
        return _toggle_settled(state, action)
    if isinstance(action, ToggleRollback):
        return _toggle_rollback(state, action)
    if isinstance(action, SyncMerge):
        return _sync_merge(state, action)
    if isinstance(action, SetProperties):
        properties = _mark_favorites(dedupe(action.properties), state.favorite_keys())
        return replace(state, properties=properties)
    if isinstance(action, SetMyProperties):
        properties = _mark_favorites(dedupe(action.properties), state.favorite_keys())
        return replace(state, my_properties=properties)
    if isinstance(action, PropertyUpserted):
        properties = _upsert(state.properties, action.property) if action.public else state.properties
        return replace(
            state,
            properties=properties,
            my_properties=_upsert(state.my_properties, action.property),
        )
    if isinstance(action, PropertyRemoved):
        pid = action.property_id
        return replace(
            state,
            properties=_without(state.properties, pid),
            my_properties=_without(state.my_properties, pid),
            favorites=_without(state.favorites, pid),
        )
    if isinstance(action, SetError):
        return replace(state, error=action.message)
    raise TypeError(f"Unsupported action: {action!r}")


Listener = Callable[[FavoritesState, Action], None]


class FavoritesStore:
    """Holds the current :class:`FavoritesState` and applies actions to it."""

    def __init__(self, initial: FavoritesState | None = None) -> None:
        self._state = initial or FavoritesState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> FavoritesState:
        return self._state

    def dispatch(self, action: Action) -> FavoritesState:
        self._state = reduce(self._state, action)
        for listener in list(self._listeners):
            try:
                listener(self._state, action)
            except Exception:
                logger.exception("Favorites state listener failed for %s", action.type.value)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = [
    "Action",
    "ActionType",
    "FavoritesState",
    "FavoritesStore",
    "PropertyRemoved",
    "PropertyUpserted",
    "SetError",
    "SetMyProperties",
    "SetProperties",
    "SyncMerge",
    "ToggleOptimistic",
    "ToggleRollback",
    "ToggleSettled",
    "dedupe",
    "reduce",
]
