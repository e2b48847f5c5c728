"""Fixtures assembling the favorites core around the fake API and memory storage."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
import pytest_asyncio

from barryland.client.http import BarrylandApiClient
from barryland.favorites.local_store import LocalFavoriteStore
from barryland.favorites.property_cache import PropertyCache
from barryland.favorites.reconciler import FavoritesReconciler
from barryland.favorites.state import FavoritesStore
from barryland.favorites.toggle import ToggleController
from barryland.services.property_service import PropertyService
from barryland.storage import ClientStorage
from tests.barryland.fakes import FakeBarrylandApi


class TokenState:
    """Session double exposing only what the reconciler reads."""

    def __init__(self, token: str | None = None) -> None:
        self.token = token

    def has_token(self) -> bool:
        return bool(self.token)


@dataclass
class FavoritesHarness:
    fake: FakeBarrylandApi
    api: BarrylandApiClient
    storage: ClientStorage
    session: TokenState
    store: FavoritesStore
    cache: PropertyCache
    local_store: LocalFavoriteStore
    reconciler: FavoritesReconciler
    toggler: ToggleController
    properties: PropertyService

    def login(self) -> None:
        self.session.token = self.fake.token

    def reconciler_with(self, **options: bool) -> FavoritesReconciler:
        return FavoritesReconciler(
            self.api, self.session, self.local_store, self.cache, self.store, **options
        )

    def requests_to(self, method: str, path: str) -> int:
        return self.fake.calls(method, path)


@pytest.fixture
def fake_api() -> FakeBarrylandApi:
    return FakeBarrylandApi()


@pytest.fixture
def storage() -> ClientStorage:
    return ClientStorage(namespace="test")


@pytest_asyncio.fixture
async def api_client(fake_api: FakeBarrylandApi):
    client = BarrylandApiClient("http://testserver/api", transport=fake_api.transport())
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def harness(fake_api, api_client, storage) -> FavoritesHarness:
    session = TokenState()
    api_client.set_token_provider(lambda: session.token)
    store = FavoritesStore()
    cache = PropertyCache(store)
    local_store = LocalFavoriteStore(storage)
    return FavoritesHarness(
        fake=fake_api,
        api=api_client,
        storage=storage,
        session=session,
        store=store,
        cache=cache,
        local_store=local_store,
        reconciler=FavoritesReconciler(api_client, session, local_store, cache, store),
        toggler=ToggleController(api_client, local_store, cache, store),
        properties=PropertyService(api_client, store, local_store),
    )
