"""Merge server favorites with the device outbox and push pending ids upstream.

Reconciliation is best effort: every failure is logged and the caller always
gets a usable favorites list back.  Only :mod:`barryland.favorites.toggle`
surfaces errors to the UI.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from barryland.client.errors import (
    ApiError,
    InvalidIdentifierError,
    NotFoundError,
    UnauthorizedError,
)
from barryland.client.http import BarrylandApiClient
from barryland.events import LoginEvent, LogoutEvent
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.state import FavoritesStore, SyncMerge, dedupe
from barryland.schemas.favorites import LoginSyncReport, OutboxStatus, favorite_identifier
from barryland.schemas.property import Property, normalize_property

logger = logging.getLogger(__name__)


class TokenHolder(Protocol):
    def has_token(self) -> bool: ...


def _identifiers(favorites: Iterable[Any]) -> set[str]:
    keys: set[str] = set()
    for favorite in favorites:
        if isinstance(favorite, Property):
            keys |= favorite.keys()
        elif isinstance(favorite, dict):
            keys |= {str(favorite[key]) for key in ("_id", "id") if favorite.get(key)}
        else:
            identifier = favorite_identifier(favorite)
            if identifier:
                keys.add(identifier)
    return keys


class FavoritesReconciler:
    """Produces the authoritative favorites list and drains the outbox.

    ``clear_unsynced_on_login`` empties the whole outbox after a login sync,
    including ids whose sync failed transiently.  When disabled only ids the
    server confirmed or rejected are removed.
    """

    def __init__(
        self,
        api: BarrylandApiClient,
        session: TokenHolder,
        local_store: LocalFavoriteStore,
        cache: PropertyCache,
        store: FavoritesStore,
        *,
        clear_unsynced_on_login: bool = False,
    ) -> None:
        self._api = api
        self._session = session
        self._local_store = local_store
        self._cache = cache
        self._store = store
        self._clear_unsynced_on_login = clear_unsynced_on_login
        self._server_ids: set[str] | None = None
        self._sync_lock = asyncio.Lock()

    @property
    def server_ids(self) -> set[str] | None:
        """Ids the server reported in the last successful fetch."""

        return None if self._server_ids is None else set(self._server_ids)

    def _server_favorite(self, entry: Any) -> Property | None:
        if isinstance(entry, dict):
            return normalize_property({**entry, "isFavorite": True})
        identifier = favorite_identifier(entry)
        if identifier is None:
            return None
        return self._cache.resolve([identifier])[0]

    def _publish(self, favorites: Sequence[Property]) -> list[Property]:
        state = self._store.dispatch(SyncMerge(tuple(favorites)))
        return list(state.favorites)

    async def _local_favorites(self) -> list[Property]:
        pending = await self._local_store.pending_ids()
        return self._publish(self._cache.resolve(pending))

    async def fetch_favorites(self, skip_auth_redirect: bool = False) -> list[Property]:
        """Return the merged favorites list and publish it to the state store.

        Anonymous sessions never hit the network; the device outbox is
        resolved against the property cache instead.
        """

        if not self._session.has_token():
            logger.debug("No auth token present; using local favorites only")
            return await self._local_favorites()

        try:
            user = await self._api.get_me(skip_auth_redirect=skip_auth_redirect)
        except UnauthorizedError:
            return await self._local_favorites()
        except (ApiError, ValidationError) as exc:
            logger.warning("Failed to load favorites from the server: %s", exc)
            return await self._local_favorites()

        server_favorites = [
            favorite
            for favorite in (self._server_favorite(entry) for entry in user.favorites)
            if favorite is not None
        ]
        server_ids = _identifiers(server_favorites)
        self._server_ids = server_ids

        pending = await self._local_store.pending_ids()
        remaining = [identifier for identifier in pending if identifier not in server_ids]
        if remaining:
            logger.debug("Appending %d unsynced local favorites", len(remaining))
        return self._publish(dedupe([*server_favorites, *self._cache.resolve(remaining)]))

    async def _push(self, identifier: str, known: set[str], report: LoginSyncReport) -> None:
        """Register one outbox id with the server and record the outcome in ``report``."""

        api_id = self._cache.canonical_id(identifier)
        if api_id is None:
            logger.debug("No server id for local favorite %s; dropping it", identifier)
            report.rejected.append(identifier)
            await self._local_store.mark_dropped(identifier)
            return
        if api_id in known:
            report.confirmed.append(identifier)
            return

        await self._local_store.mark_syncing(identifier)
        try:
            await self._api.toggle_favorite(api_id, skip_auth_redirect=True)
        except (InvalidIdentifierError, NotFoundError):
            report.rejected.append(identifier)
            await self._local_store.mark_dropped(identifier)
        except ApiError as exc:
            logger.info("Keeping favorite %s pending after sync failure: %s", identifier, exc)
            report.failed.append(identifier)
            await self._local_store.mark_pending(identifier)
        else:
            report.confirmed.append(identifier)
            known.add(api_id)

    async def sync_on_login(self, event: LoginEvent) -> LoginSyncReport:
        """Push favorites made before login, then refresh from the server."""

        report = LoginSyncReport()
        async with self._sync_lock:
            try:
                await self._sync_local_favorites(event, report)
            except Exception:
                logger.exception("Favorites sync after login failed")
            else:
                logger.info(
                    "Login favorites sync: %d confirmed, %d rejected, %d failed",
                    len(report.confirmed),
                    len(report.rejected),
                    len(report.failed),
                )
        return report

    async def _sync_local_favorites(self, event: LoginEvent, report: LoginSyncReport) -> None:
        server_ids = _identifiers(event.favorites)
        local_ids = await self._local_store.pending_ids()

        for identifier in local_ids:
            if identifier in server_ids:
                report.confirmed.append(identifier)
            else:
                await self._push(identifier, server_ids, report)

        if self._clear_unsynced_on_login:
            await self._local_store.clear()
        else:
            for identifier in (*report.confirmed, *report.rejected):
                await self._local_store.remove(identifier)
            await self._local_store.purge_dropped()

        favorites = await self.fetch_favorites()
        present = _identifiers(favorites)
        missing = [identifier for identifier in local_ids if identifier not in present]
        if missing:
            favorites = self._publish(dedupe([*favorites, *self._cache.resolve(missing)]))
        report.favorites = favorites

    async def _refresh_server_ids(self) -> set[str] | None:
        """Re-read the server's favorites without touching the displayed list."""

        try:
            user = await self._api.get_me(skip_auth_redirect=True)
        except (ApiError, ValidationError) as exc:
            logger.info("Cannot confirm server favorites before retrying: %s", exc)
            self._server_ids = None
            return None
        self._server_ids = _identifiers(user.favorites)
        return set(self._server_ids)

    async def retry_pending(self) -> LoginSyncReport:
        """Retry outbox entries still marked ``pending`` while a token is present.

        The server list is re-read first because the favorite endpoint is a
        toggle: posting an id the server already holds would remove it.  A
        retry requested while another sync owns the outbox is skipped.
        """

        report = LoginSyncReport()
        if not self._session.has_token():
            return report
        if self._sync_lock.locked():
            logger.debug("Favorites sync already running; skipping retry")
            return report

        async with self._sync_lock:
            try:
                entries = [
                    entry
                    for entry in await self._local_store.entries()
                    if entry.status is OutboxStatus.PENDING
                ]
                if not entries:
                    return report
                known = await self._refresh_server_ids()
                if known is None:
                    return report

                for entry in entries:
                    await self._push(entry.id, known, report)
                for identifier in report.confirmed:
                    await self._local_store.remove(identifier)
                await self._local_store.purge_dropped()

                if report.confirmed or report.rejected:
                    report.favorites = await self.fetch_favorites(skip_auth_redirect=True)
            except Exception:
                logger.exception("Retrying pending favorites failed")
        return report

    async def handle_logout(self, event: LogoutEvent | None = None) -> None:
        """Forget everything tied to the previous account."""

        self._server_ids = None
        await self._local_store.clear()
        self._publish(())


__all__ = ["FavoritesReconciler"]
