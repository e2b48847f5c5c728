"""Session lifecycle: login, logout, token expiry and the event bus."""

import json
import logging

import pytest
import pytest_asyncio

from barryland.client.errors import UnauthorizedError
from barryland.events import LoginEvent, LogoutEvent, SessionEventBus
from barryland.session import SessionManager
from barryland.storage import AUTH_TOKEN_KEY, LOCAL_FAVORITES_KEY, USER_KEY
from tests.barryland.fakes import NETWORK_DOWN, PROPERTY_A, USER_ID


@pytest_asyncio.fixture
async def session(api_client, storage):
    return SessionManager(api_client, storage, SessionEventBus())


def _record(bus: SessionEventBus, event_type):
    received = []
    bus.subscribe(event_type, received.append)
    return received


# -- event bus --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_the_others(caplog):
    bus = SessionEventBus()
    received = []

    async def broken(event):
        raise RuntimeError("handler exploded")

    async def healthy(event):
        received.append(event)

    bus.subscribe(LoginEvent, broken)
    bus.subscribe(LoginEvent, healthy)

    with caplog.at_level(logging.ERROR, logger="barryland.events"):
        await bus.publish(LoginEvent(favorites=(PROPERTY_A,)))

    assert received == [LoginEvent(favorites=(PROPERTY_A,))]
    assert "handler exploded" in caplog.text


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = SessionEventBus()
    received = []
    unsubscribe = bus.subscribe(LogoutEvent, received.append)

    await bus.publish(LogoutEvent())
    unsubscribe()
    unsubscribe()
    await bus.publish(LogoutEvent())
    await bus.publish(LoginEvent())

    assert received == [LogoutEvent()]
    assert bus.handler_count(LogoutEvent) == 0


# -- login --------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_login_persists_credentials_and_publishes_favorites(session, storage, fake_api):
    fake_api.add_property(PROPERTY_A)
    fake_api.favorite_ids = [PROPERTY_A]
    logins = _record(session.events, LoginEvent)

    response = await session.login("  Jean@Example.COM ", "motdepasse")

    assert response.success is True
    assert response.message == "Connexion réussie"
    assert session.has_token()
    assert await storage.get_json(AUTH_TOKEN_KEY) == fake_api.token
    assert (await storage.get_json(USER_KEY))["email"] == "jean@example.com"
    assert json.loads(fake_api.requests[0].content)["email"] == "jean@example.com"
    (event,) = logins
    assert [favorite["_id"] for favorite in event.favorites] == [PROPERTY_A]


@pytest.mark.asyncio
async def test_login_failure_returns_server_message(session, storage):
    logins = _record(session.events, LoginEvent)

    response = await session.login("inconnu@example.com", "motdepasse")

    assert response.success is False
    assert response.message == "Email ou mot de passe incorrect"
    assert response.data is None
    assert logins == []
    assert await storage.get_json(AUTH_TOKEN_KEY) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (401, "Email ou mot de passe incorrect."),
        (403, "Votre compte n'est pas encore vérifié. Veuillez vérifier votre email."),
        (404, "Aucun compte n'existe avec cet email."),
        (429, "Trop de tentatives de connexion. Veuillez réessayer dans quelques minutes."),
        (500, "Le service est temporairement indisponible. Veuillez réessayer plus tard."),
        (418, "Erreur lors de la connexion. Veuillez réessayer."),
        (NETWORK_DOWN, "Une erreur est survenue lors de la connexion."),
    ],
)
async def test_login_failure_messages_by_status(session, fake_api, status_code, expected):
    fake_api.fail("POST", "/auth/login", status_code, body={"error": "opaque"})

    response = await session.login("jean@example.com", "motdepasse")

    assert response.success is False
    assert response.message == expected


# -- logout / expiry ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_logout_clears_credentials_and_local_favorites(session, storage, fake_api):
    await session.login("jean@example.com", "motdepasse")
    await storage.set_json(LOCAL_FAVORITES_KEY, [{"id": PROPERTY_A, "status": "pending"}])
    logouts = _record(session.events, LogoutEvent)

    await session.logout()

    assert fake_api.calls("POST", "/auth/logout") == 1
    assert session.token is None and session.user is None
    for key in (AUTH_TOKEN_KEY, USER_KEY, LOCAL_FAVORITES_KEY):
        assert await storage.get_raw(key) is None
    assert logouts == [LogoutEvent()]


@pytest.mark.asyncio
async def test_logout_survives_server_failure(session, fake_api):
    await session.login("jean@example.com", "motdepasse")
    fake_api.fail("POST", "/auth/logout", 500)

    await session.logout()

    assert not session.has_token()


@pytest.mark.asyncio
async def test_unexpected_401_expires_session_but_keeps_local_favorites(
    session, storage, fake_api, api_client
):
    await session.login("jean@example.com", "motdepasse")
    await storage.set_json(LOCAL_FAVORITES_KEY, [PROPERTY_A])
    fake_api.token = "rotated"

    with pytest.raises(UnauthorizedError):
        await api_client.get_me()

    assert session.token is None
    assert await storage.get_json(AUTH_TOKEN_KEY) is None
    assert await storage.get_json(LOCAL_FAVORITES_KEY) == [PROPERTY_A]


@pytest.mark.asyncio
async def test_skip_auth_redirect_keeps_session(session, fake_api, api_client):
    await session.login("jean@example.com", "motdepasse")
    fake_api.token = "rotated"

    with pytest.raises(UnauthorizedError):
        await api_client.get_me(skip_auth_redirect=True)

    assert session.has_token()


# -- restore ------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_restore_loads_persisted_session(session, storage):
    await storage.set_json(AUTH_TOKEN_KEY, "persisted")
    await storage.set_json(USER_KEY, {"_id": USER_ID, "id": USER_ID, "email": "jean@example.com"})

    user = await session.restore()

    assert user.id == USER_ID
    assert session.token == "persisted"


@pytest.mark.asyncio
async def test_restore_discards_corrupt_profile(session, storage):
    await storage.set_json(AUTH_TOKEN_KEY, "persisted")
    await storage.set_json(USER_KEY, {"unexpected": True})

    assert await session.restore() is None
    assert not session.has_token()
    assert await storage.get_raw(AUTH_TOKEN_KEY) is None


@pytest.mark.asyncio
async def test_restore_drops_profile_without_token(session, storage):
    await storage.set_json(USER_KEY, {"id": USER_ID, "email": "jean@example.com"})

    assert await session.restore() is None
    assert await storage.get_raw(USER_KEY) is None


@pytest.mark.asyncio
async def test_register_keeps_the_new_session_without_login_event(session, fake_api):
    logins = _record(session.events, LoginEvent)
    fake_api.respond(
        "POST",
        "/auth/register",
        201,
        {
            "success": True,
            "message": "Compte créé avec succès",
            "data": {"token": "new-token", "user": {"id": USER_ID, "email": "awa@example.ci"}},
        },
    )

    response = await session.register(
        {
            "firstName": " Awa ",
            "lastName": "Traoré",
            "email": " AWA@example.ci",
            "password": "secret1",
        }
    )

    assert response.success is True
    assert session.token == "new-token"
    assert logins == []
    body = json.loads(fake_api.requests[-1].content)
    assert body["firstName"] == "Awa"
    assert body["email"] == "awa@example.ci"
