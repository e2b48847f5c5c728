"""Device-local outbox of favorites waiting for server confirmation.

The outbox is stored under :data:`barryland.storage.LOCAL_FAVORITES_KEY` as a
JSON list of ``{"id": ..., "status": ...}`` objects, newest first.  Older
clients wrote a bare list of ids; such payloads are read as all-``pending``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import ValidationError

from barryland.favorites.identifiers import normalize_ids
from barryland.schemas.favorites import OutboxEntry, OutboxStatus
from barryland.storage import LOCAL_FAVORITES_KEY, ClientStorage

logger = logging.getLogger(__name__)

ChangeListener = Callable[[list[str]], Awaitable[None]]


def _parse_entries(payload: Any) -> list[OutboxEntry]:
    if not isinstance(payload, list):
        return []
    entries: list[OutboxEntry] = []
    seen: set[str] = set()
    for item in payload:
        if isinstance(item, (str, int)) and not isinstance(item, bool):
            candidate: Any = {"id": str(item)}
        elif isinstance(item, dict):
            candidate = {**item, "id": str(item.get("id") or "")}
        else:
            continue
        try:
            entry = OutboxEntry.model_validate(candidate)
        except ValidationError:
            continue
        if entry.id in seen:
            continue
        seen.add(entry.id)
        entries.append(entry)
    return entries


class LocalFavoriteStore:
    """Outbox of property ids favorited on this device but not yet on the server.

    ``cached_ids`` mirrors the live (non-dropped) ids after every read or
    write.  Listeners registered with :meth:`subscribe` are awaited whenever a
    mutation changes that set; they run after the outbox lock is released so
    they may read or write the outbox themselves.
    """

    def __init__(self, storage: ClientStorage) -> None:
        self._storage = storage
        self._lock = asyncio.Lock()
        self._listeners: list[ChangeListener] = []
        self.cached_ids: list[str] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener(live_ids)`` after each change; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, before: Iterable[str]) -> None:
        if set(before) == set(self.cached_ids):
            return
        live = list(self.cached_ids)
        for listener in list(self._listeners):
            try:
                await listener(live)
            except Exception:
                logger.exception("Local favorites listener %r failed", listener)

    async def _read(self) -> list[OutboxEntry]:
        entries = _parse_entries(await self._storage.get_json(LOCAL_FAVORITES_KEY))
        self._refresh_mirror(entries)
        return entries

    async def _write(self, entries: list[OutboxEntry]) -> None:
        await self._storage.set_json(
            LOCAL_FAVORITES_KEY, [entry.model_dump(mode="json") for entry in entries]
        )
        self._refresh_mirror(entries)

    def _refresh_mirror(self, entries: Iterable[OutboxEntry]) -> None:
        self.cached_ids = [e.id for e in entries if e.status is not OutboxStatus.DROPPED]

    async def load(self) -> set[str]:
        """Return every id that is still pending; unreadable data counts as empty."""

        return {entry.id for entry in await self._read() if entry.status is not OutboxStatus.DROPPED}

    async def pending_ids(self) -> list[str]:
        """Like :meth:`load` but ordered newest first."""

        return [entry.id for entry in await self._read() if entry.status is not OutboxStatus.DROPPED]

    async def entries(self) -> list[OutboxEntry]:
        return await self._read()

    async def save(self, ids: Iterable[Any]) -> None:
        """Replace the live outbox with ``ids``.

        Ids already in flight keep their ``syncing`` status; dropped entries
        that are not re-listed stay recorded until :meth:`purge_dropped`.
        """

        async with self._lock:
            current = {entry.id: entry for entry in await self._read()}
            before = list(self.cached_ids)
            normalized = normalize_ids(ids)
            entries = [
                OutboxEntry(
                    id=identifier,
                    status=(
                        OutboxStatus.SYNCING
                        if identifier in current and current[identifier].status is OutboxStatus.SYNCING
                        else OutboxStatus.PENDING
                    ),
                )
                for identifier in normalized
            ]
            listed = set(normalized)
            entries.extend(
                entry
                for entry in current.values()
                if entry.status is OutboxStatus.DROPPED and entry.id not in listed
            )
            await self._write(entries)
        await self._notify(before)

    async def add(self, identifier: Any) -> None:
        """Queue ``identifier`` at the front; reviving it if it had been dropped."""

        key = str(identifier)
        async with self._lock:
            entries = await self._read()
            before = list(self.cached_ids)
            index = next((i for i, entry in enumerate(entries) if entry.id == key), None)
            if index is None:
                entries.insert(0, OutboxEntry(id=key))
                await self._write(entries)
            elif entries[index].status is OutboxStatus.DROPPED:
                entries[index] = OutboxEntry(id=key, status=OutboxStatus.PENDING)
                await self._write(entries)
        await self._notify(before)

    async def remove(self, identifier: Any) -> None:
        key = str(identifier)
        async with self._lock:
            entries = await self._read()
            before = list(self.cached_ids)
            remaining = [entry for entry in entries if entry.id != key]
            if len(remaining) != len(entries):
                await self._write(remaining)
        await self._notify(before)

    async def _set_status(self, identifier: Any, status: OutboxStatus) -> None:
        key = str(identifier)
        async with self._lock:
            entries = await self._read()
            before = list(self.cached_ids)
            changed = False
            for index, entry in enumerate(entries):
                if entry.id == key and entry.status is not status:
                    entries[index] = OutboxEntry(id=key, status=status)
                    changed = True
            if changed:
                await self._write(entries)
        await self._notify(before)

    async def mark_syncing(self, identifier: Any) -> None:
        await self._set_status(identifier, OutboxStatus.SYNCING)

    async def mark_pending(self, identifier: Any) -> None:
        await self._set_status(identifier, OutboxStatus.PENDING)

    async def mark_dropped(self, identifier: Any) -> None:
        """Record that the server rejected ``identifier``; it will not be retried."""

        logger.debug("Dropping pending favorite %s", identifier)
        await self._set_status(identifier, OutboxStatus.DROPPED)

    async def purge_dropped(self) -> None:
        async with self._lock:
            entries = await self._read()
            remaining = [entry for entry in entries if entry.status is not OutboxStatus.DROPPED]
            if len(remaining) != len(entries):
                await self._write(remaining)

    async def clear(self) -> None:
        async with self._lock:
            await self._read()
            before = list(self.cached_ids)
            await self._storage.delete(LOCAL_FAVORITES_KEY)
            self.cached_ids = []
        await self._notify(before)


__all__ = ["ChangeListener", "LocalFavoriteStore"]
