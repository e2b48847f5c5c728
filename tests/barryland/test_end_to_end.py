"""A full client wired to the reference server through ``httpx.ASGITransport``."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport

from barryland.server.main import create_app
from barryland.server.repository import DocumentStore
from barryland.server.security import hash_password
from barryland.services.dependencies import create_client
from barryland.settings import AppSettings
from barryland.storage import ClientStorage

PASSWORD = "secret123"


@pytest.fixture
def document_store() -> DocumentStore:
    store = DocumentStore()
    seller = store.create_user(
        {"firstName": "Yao", "lastName": "Konan", "email": "yao@example.ci"},
        hash_password(PASSWORD, rounds=4),
    )
    store.create_user(
        {"firstName": "Awa", "lastName": "Traoré", "email": "awa@example.ci"},
        hash_password(PASSWORD, rounds=4),
    )
    for title in ("Villa Cocody", "Studio Marcory"):
        listing = store.create_property(seller["_id"], {"title": title, "price": 120000})
        store.set_property_status(listing["_id"], "validee")
    return store


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(api_base_url="http://testserver/api/", redis_url=None)


@pytest_asyncio.fixture
async def client_factory(document_store, settings):
    app = create_app(document_store, settings=settings)
    transport = ASGITransport(app=app)
    clients = []

    async def build(storage: ClientStorage | None = None):
        client = await create_client(
            settings,
            storage=storage or ClientStorage(namespace=f"device-{len(clients)}"),
            transport=transport,
        )
        clients.append(client)
        return client

    yield build
    for client in clients:
        await client.aclose()


def _listing_id(client, title: str) -> str:
    return next(item.id for item in client.favorites.properties if item.title == title)


@pytest.mark.asyncio
async def test_anonymous_favorites_follow_the_user_through_login(client_factory, document_store):
    client = await client_factory()
    await client.favorites.start()
    villa = _listing_id(client, "Villa Cocody")

    # Parked while anonymous (e.g. favorited before the session existed).
    await client.local_favorites.add(villa)
    await client.favorites.fetch_favorites()
    assert [item.title for item in client.favorites.favorites] == ["Villa Cocody"]

    response = await client.session.login("AWA@example.ci", PASSWORD)

    assert response.success is True
    assert await client.local_favorites.load() == set()
    awa = document_store.find_user_by_email("awa@example.ci")
    assert awa["favorites"] == [villa]
    assert [item.id for item in client.favorites.favorites] == [villa]
    assert document_store.get_property(villa)["favorites"] == 1


@pytest.mark.asyncio
async def test_toggle_and_logout_against_the_server(client_factory, document_store):
    client = await client_factory()
    await client.favorites.start()
    await client.session.login("awa@example.ci", PASSWORD)
    studio = _listing_id(client, "Studio Marcory")

    assert await client.favorites.toggle_favorite(studio) is True
    assert client.favorites.is_favorite(studio)
    assert document_store.get_property(studio)["favorites"] == 1

    await client.session.logout()

    assert client.favorites.favorites == []
    assert not client.session.has_token()
    assert document_store.find_user_by_email("awa@example.ci")["favorites"] == [studio]


@pytest.mark.asyncio
async def test_restored_session_reloads_server_favorites(client_factory, document_store):
    storage = ClientStorage(namespace="shared-device")
    first = await client_factory(storage)
    await first.favorites.start()
    await first.session.login("awa@example.ci", PASSWORD)
    villa = _listing_id(first, "Villa Cocody")
    await first.favorites.toggle_favorite(villa)

    second = await client_factory(storage)
    await second.favorites.start()

    assert second.session.has_token()
    assert [item.id for item in second.favorites.favorites] == [villa]
    assert second.favorites.is_favorite(villa)


@pytest.mark.asyncio
async def test_deleted_listing_is_dropped_by_the_background_retry(client_factory, document_store):
    client = await client_factory()
    await client.favorites.start()
    await client.session.login("awa@example.ci", PASSWORD)
    villa = _listing_id(client, "Villa Cocody")
    document_store.delete_property(villa)

    assert await client.favorites.toggle_favorite(villa) is True

    assert await client.local_favorites.load() == set()
    assert not client.favorites.is_favorite(villa)
    assert client.favorites.favorites == []
    assert document_store.find_user_by_email("awa@example.ci")["favorites"] == []


@pytest.mark.asyncio
async def test_owner_inbox_through_the_client(client_factory, document_store):
    visitor = await client_factory()
    await visitor.favorites.start()
    villa = _listing_id(visitor, "Villa Cocody")
    await visitor.messages.contact_owner(
        {"propertyId": villa, "firstName": "Aya", "message": "Visite possible samedi ?"}
    )

    owner = await client_factory()
    await owner.session.login("yao@example.ci", PASSWORD)
    page = await owner.messages.get_messages()

    assert page.total == 1
    message = page.messages[0]
    assert message.first_name == "Aya"

    updated = await owner.messages.update_message(message.id, read=True)
    assert updated.status == "lu"
    assert (await owner.messages.get_message(message.id)).read is True
