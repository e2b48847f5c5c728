"""Integration-style tests that exercise the reference FastAPI routes in memory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from barryland.server.main import create_app
from barryland.server.repository import DocumentStore

MISSING_ID = "65f1c0ffee0123456789dead"


@dataclass
class ServerHarness:
    client: AsyncClient
    store: DocumentStore

    async def register(self, email: str, first_name: str = "Awa") -> tuple[str, dict[str, Any]]:
        response = await self.client.post(
            "/api/auth/register",
            json={
                "firstName": first_name,
                "lastName": "Traoré",
                "email": email,
                "password": "secret123",
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["token"], data["user"]

    async def publish_listing(self, token: str, **fields: Any) -> str:
        body = {"title": "Villa Cocody", "price": 250000, "transactionType": "vente", **fields}
        response = await self.client.post("/api/properties", json=body, headers=_auth(token))
        assert response.status_code == 201, response.text
        property_id = response.json()["data"]["property"]["_id"]
        self.store.set_property_status(property_id, "validee")
        return property_id


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def server() -> AsyncIterator[ServerHarness]:
    store = DocumentStore()
    app = create_app(store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield ServerHarness(client=client, store=store)


@pytest.mark.asyncio
async def test_healthcheck(server: ServerHarness) -> None:
    response = await server.client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


# -- auth -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_register_login_and_profile(server: ServerHarness) -> None:
    token, user = await server.register("awa@example.ci")

    assert "password" not in user
    assert user["favorites"] == []

    login = await server.client.post(
        "/api/auth/login", json={"email": "AWA@example.ci", "password": "secret123"}
    )
    assert login.status_code == 200
    assert login.json()["message"] == "Connexion réussie"

    me = await server.client.get("/api/auth/me", headers=_auth(login.json()["data"]["token"]))
    assert me.json()["data"]["email"] == "awa@example.ci"


@pytest.mark.asyncio
async def test_duplicate_registration_is_rejected(server: ServerHarness) -> None:
    await server.register("awa@example.ci")

    response = await server.client.post(
        "/api/auth/register",
        json={"firstName": "A", "lastName": "B", "email": "awa@example.ci", "password": "secret123"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Un utilisateur avec cet email existe déjà"


@pytest.mark.asyncio
async def test_bad_credentials_return_structured_401(server: ServerHarness) -> None:
    await server.register("awa@example.ci")

    response = await server.client.post(
        "/api/auth/login", json={"email": "awa@example.ci", "password": "mauvais"}
    )

    body = response.json()
    assert response.status_code == 401
    assert body["success"] is False
    assert body["error_type"] == "authentication_error"
    assert body["message"] == "Email ou mot de passe incorrect"
    assert body["request_id"] == response.headers["X-Request-ID"]
    assert body["path"] == "/api/auth/login"


@pytest.mark.asyncio
async def test_profile_requires_a_valid_token(server: ServerHarness) -> None:
    missing = await server.client.get("/api/auth/me")
    invalid = await server.client.get("/api/auth/me", headers=_auth("forged"))

    assert missing.status_code == invalid.status_code == 401
    assert missing.json()["message"] == "Accès refusé. Token manquant."
    assert invalid.json()["message"] == "Token invalide."


@pytest.mark.asyncio
async def test_logout_revokes_the_token(server: ServerHarness) -> None:
    token, _ = await server.register("awa@example.ci")

    response = await server.client.post("/api/auth/logout", headers=_auth(token))
    after = await server.client.get("/api/auth/me", headers=_auth(token))

    assert response.status_code == 200
    assert after.status_code == 401


@pytest.mark.asyncio
async def test_validation_errors_use_the_error_envelope(server: ServerHarness) -> None:
    response = await server.client.post("/api/auth/login", json={"email": "awa@example.ci"})

    body = response.json()
    assert response.status_code == 422
    assert body["error_type"] == "validation_error"
    assert body["message"] == "Données invalides"
    assert [error["field"] for error in body["errors"]] == ["body.password"]


# -- properties -----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_new_listings_wait_for_validation(server: ServerHarness) -> None:
    token, _ = await server.register("vendeur@example.ci")
    created = await server.client.post(
        "/api/properties", json={"title": "Duplex", "status": "validee"}, headers=_auth(token)
    )
    property_id = created.json()["data"]["property"]["_id"]

    assert created.json()["data"]["property"]["status"] == "en_attente"
    listing = await server.client.get("/api/properties")
    assert listing.json()["data"]["properties"] == []

    server.store.set_property_status(property_id, "validee")
    listing = await server.client.get("/api/properties", params={"city": ""})
    data = listing.json()["data"]
    assert [item["_id"] for item in data["properties"]] == [property_id]
    assert data["pagination"] == {"current": 1, "pages": 1, "total": 1}

    mine = await server.client.get("/api/properties/user/my-properties", headers=_auth(token))
    assert [item["_id"] for item in mine.json()["data"]["properties"]] == [property_id]


@pytest.mark.asyncio
async def test_listing_filters(server: ServerHarness) -> None:
    token, _ = await server.register("vendeur@example.ci")
    cheap = await server.publish_listing(token, price=50000, location={"city": "Bouaké"})
    await server.publish_listing(token, price=900000, location={"city": "Abidjan"})

    response = await server.client.get(
        "/api/properties", params={"maxPrice": 100000, "city": "bouak"}
    )

    assert [item["_id"] for item in response.json()["data"]["properties"]] == [cheap]


@pytest.mark.asyncio
async def test_single_property_errors(server: ServerHarness) -> None:
    malformed = await server.client.get("/api/properties/not-an-id")
    missing = await server.client.get(f"/api/properties/{MISSING_ID}")

    assert malformed.status_code == 400
    assert missing.status_code == 404
    assert missing.json()["message"] == "Propriété non trouvée"


@pytest.mark.asyncio
async def test_only_owner_can_edit_or_delete(server: ServerHarness) -> None:
    owner_token, _ = await server.register("vendeur@example.ci")
    other_token, _ = await server.register("curieux@example.ci", first_name="Koffi")
    property_id = await server.publish_listing(owner_token)

    forbidden = await server.client.put(
        f"/api/properties/{property_id}", json={"price": 1}, headers=_auth(other_token)
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["message"] == "Accès non autorisé"

    updated = await server.client.put(
        f"/api/properties/{property_id}",
        json={"price": 240000, "status": "rejetee"},
        headers=_auth(owner_token),
    )
    assert updated.json()["data"]["property"]["price"] == 240000
    assert updated.json()["data"]["property"]["status"] == "validee"

    denied = await server.client.delete(f"/api/properties/{property_id}", headers=_auth(other_token))
    deleted = await server.client.delete(f"/api/properties/{property_id}", headers=_auth(owner_token))
    assert denied.status_code == 403
    assert deleted.status_code == 200
    assert property_id not in server.store.properties


# -- favorites ------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_favorite_toggle_round_trip(server: ServerHarness) -> None:
    owner_token, _ = await server.register("vendeur@example.ci")
    visitor_token, _ = await server.register("visiteur@example.ci", first_name="Koffi")
    property_id = await server.publish_listing(owner_token)
    path = f"/api/properties/{property_id}/favorite"

    added = await server.client.post(path, headers=_auth(visitor_token))
    assert added.json()["data"]["isFavorite"] is True
    assert added.json()["data"]["favoritesCount"] == 1
    assert added.json()["data"]["property"]["isFavorite"] is True

    me = await server.client.get("/api/auth/me", headers=_auth(visitor_token))
    assert [favorite["_id"] for favorite in me.json()["data"]["favorites"]] == [property_id]

    listing = await server.client.get("/api/properties", headers=_auth(visitor_token))
    assert listing.json()["data"]["properties"][0]["isFavorite"] is True

    removed = await server.client.post(path, headers=_auth(visitor_token))
    assert removed.json()["data"]["isFavorite"] is False
    assert removed.json()["data"]["favoritesCount"] == 0


@pytest.mark.asyncio
async def test_favorite_toggle_errors(server: ServerHarness) -> None:
    token, _ = await server.register("visiteur@example.ci")

    anonymous = await server.client.post(f"/api/properties/{MISSING_ID}/favorite")
    malformed = await server.client.post("/api/properties/bad-id/favorite", headers=_auth(token))
    missing = await server.client.post(f"/api/properties/{MISSING_ID}/favorite", headers=_auth(token))

    assert anonymous.status_code == 401
    assert malformed.status_code == 400
    assert missing.status_code == 404
    assert missing.json()["message"] == "Propriété non trouvée"


@pytest.mark.asyncio
async def test_deleting_a_listing_removes_it_from_favorites(server: ServerHarness) -> None:
    owner_token, _ = await server.register("vendeur@example.ci")
    visitor_token, _ = await server.register("visiteur@example.ci", first_name="Koffi")
    property_id = await server.publish_listing(owner_token)
    await server.client.post(f"/api/properties/{property_id}/favorite", headers=_auth(visitor_token))

    await server.client.delete(f"/api/properties/{property_id}", headers=_auth(owner_token))

    me = await server.client.get("/api/auth/me", headers=_auth(visitor_token))
    assert me.json()["data"]["favorites"] == []


# -- messages -------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_contact_owner_and_read_inbox(server: ServerHarness) -> None:
    owner_token, _ = await server.register("vendeur@example.ci")
    other_token, _ = await server.register("curieux@example.ci", first_name="Koffi")
    property_id = await server.publish_listing(owner_token)

    sent = await server.client.post(
        "/api/messages",
        json={
            "propertyId": property_id,
            "firstName": "Aya",
            "email": "aya@example.ci",
            "message": "Toujours disponible ?",
        },
    )
    assert sent.status_code == 201
    message_id = sent.json()["data"]["_id"]

    inbox = await server.client.get("/api/messages", headers=_auth(owner_token))
    data = inbox.json()["data"]
    assert data["total"] == 1
    assert data["messages"][0]["property"] == {"_id": property_id, "title": "Villa Cocody"}

    denied = await server.client.get(f"/api/messages/{message_id}", headers=_auth(other_token))
    assert denied.status_code == 403

    read = await server.client.patch(
        f"/api/messages/{message_id}", json={"read": True}, headers=_auth(owner_token)
    )
    assert read.json()["data"]["status"] == "lu"
    assert read.json()["data"]["read"] is True

    unread = await server.client.get(
        "/api/messages", params={"status": "nouveau"}, headers=_auth(owner_token)
    )
    assert unread.json()["data"]["messages"] == []


@pytest.mark.asyncio
async def test_messaging_unknown_property_or_message(server: ServerHarness) -> None:
    token, _ = await server.register("vendeur@example.ci")

    unknown_property = await server.client.post(
        "/api/messages", json={"propertyId": MISSING_ID, "message": "Bonjour"}
    )
    unknown_message = await server.client.get(f"/api/messages/{MISSING_ID}", headers=_auth(token))

    assert unknown_property.status_code == 404
    assert unknown_message.status_code == 404
    assert unknown_message.json()["message"] == "Message non trouvé"


@pytest.mark.asyncio
async def test_client_request_id_is_echoed_in_errors(server: ServerHarness) -> None:
    response = await server.client.get(
        f"/api/properties/{MISSING_ID}", headers={"X-Request-ID": "front-0042abcd"}
    )

    assert response.status_code == 404
    assert response.headers["X-Request-ID"] == "front-0042abcd"
    assert response.json()["request_id"] == "front-0042abcd"
