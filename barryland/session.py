"""Authentication state for one client: token storage and login/logout events."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from barryland.client.errors import ApiError, NetworkError
from barryland.client.http import BarrylandApiClient
from barryland.events import LoginEvent, LogoutEvent, SessionEventBus
from barryland.schemas.auth import AuthResponse, User
from barryland.storage import AUTH_TOKEN_KEY, LOCAL_FAVORITES_KEY, USER_KEY, ClientStorage

logger = logging.getLogger(__name__)

INVALID_RESPONSE_MESSAGE = "Réponse du serveur invalide"

_LOGIN_STATUS_MESSAGES: dict[int, str] = {
    403: "Votre compte n'est pas encore vérifié. Veuillez vérifier votre email.",
    404: "Aucun compte n'existe avec cet email.",
    429: "Trop de tentatives de connexion. Veuillez réessayer dans quelques minutes.",
    500: "Le service est temporairement indisponible. Veuillez réessayer plus tard.",
}


def _server_message(exc: ApiError) -> str | None:
    payload = exc.payload
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def _login_failure_message(exc: ApiError) -> str:
    if isinstance(exc, NetworkError) or exc.status_code is None:
        return "Une erreur est survenue lors de la connexion."
    if exc.status_code == 401:
        return _server_message(exc) or "Email ou mot de passe incorrect."
    fallback = _server_message(exc) or "Erreur lors de la connexion. Veuillez réessayer."
    return _LOGIN_STATUS_MESSAGES.get(exc.status_code, fallback)


class SessionManager:
    """Owns the bearer token and the cached user profile.

    The token is mirrored in memory so the API client's token provider can
    read it synchronously; :meth:`restore` loads it from storage on startup.
    """

    def __init__(
        self,
        api: BarrylandApiClient,
        storage: ClientStorage,
        events: SessionEventBus,
    ) -> None:
        self._api = api
        self._storage = storage
        self._events = events
        self._token: str | None = None
        self._user: User | None = None
        api.set_token_provider(lambda: self._token)
        api.set_unauthorized_hook(self.expire)

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def events(self) -> SessionEventBus:
        return self._events

    def has_token(self) -> bool:
        return bool(self._token)

    async def restore(self) -> User | None:
        """Load the persisted token and user; a corrupt user record logs the session out."""

        token = await self._storage.get_json(AUTH_TOKEN_KEY)
        self._token = token if isinstance(token, str) and token else None

        stored_user = await self._storage.get_json(USER_KEY)
        self._user = None
        if stored_user is not None:
            try:
                self._user = User.model_validate(stored_user)
            except ValidationError:
                logger.warning("Discarding unreadable stored user profile")
                await self._storage.delete(USER_KEY, AUTH_TOKEN_KEY)
                self._token = None

        if self._user is not None and self._token is None:
            # A profile without a token is a stale session.
            await self._clear_credentials()
        return self._user

    async def _persist(self, token: str, user: User) -> None:
        self._token = token
        self._user = user
        await self._storage.set_json(AUTH_TOKEN_KEY, token)
        await self._storage.set_json(USER_KEY, user.model_dump(mode="json", by_alias=True))

    async def _clear_credentials(self) -> None:
        self._token = None
        self._user = None
        await self._storage.delete(AUTH_TOKEN_KEY, USER_KEY)

    async def login(self, email: str, password: str) -> AuthResponse:
        """Authenticate and publish :class:`LoginEvent` with the user's favorites.

        Failures are returned as ``AuthResponse(success=False)`` with a message
        suitable for the login form; nothing is raised.
        """

        try:
            response = await self._api.login(email.strip().lower(), password)
        except ApiError as exc:
            payload = exc.payload
            if isinstance(payload, Mapping) and "success" in payload:
                try:
                    return AuthResponse.model_validate({**payload, "data": None})
                except ValidationError:
                    pass
            message = _login_failure_message(exc)
            logger.info("Login failed (%s): %s", exc.status_code, message)
            return AuthResponse(success=False, message=message)
        except ValidationError:
            return AuthResponse(success=False, message=INVALID_RESPONSE_MESSAGE)

        if not response.success:
            return response
        if response.data is None or not response.data.token:
            return AuthResponse(success=False, message=INVALID_RESPONSE_MESSAGE)

        await self._persist(response.data.token, response.data.user)
        logger.info("User %s logged in", response.data.user.id)
        await self._events.publish(LoginEvent(favorites=tuple(response.data.user.favorites)))
        return AuthResponse(success=True, message="Connexion réussie", data=response.data)

    async def register(self, user_data: Mapping[str, Any]) -> AuthResponse:
        """Create an account and keep the returned session.

        Unlike :meth:`login`, API failures propagate so the registration form
        can show the server's message.
        """

        formatted = dict(user_data)
        for key in ("firstName", "lastName", "phone"):
            if isinstance(formatted.get(key), str):
                formatted[key] = formatted[key].strip()
        if isinstance(formatted.get("email"), str):
            formatted["email"] = formatted["email"].strip().lower()

        response = await self._api.register(formatted)
        if not response.success:
            return response
        if response.data is None or not response.data.token:
            return AuthResponse(success=False, message=INVALID_RESPONSE_MESSAGE)

        await self._persist(response.data.token, response.data.user)
        return response

    async def logout(self) -> None:
        """End the session and purge locally pending favorites."""

        if self._token:
            try:
                await self._api.logout()
            except ApiError as exc:
                logger.debug("Server-side logout failed: %s", exc)
        await self._clear_credentials()
        await self._storage.delete(LOCAL_FAVORITES_KEY)
        await self._events.publish(LogoutEvent())

    async def expire(self) -> None:
        """Forget a token the server no longer accepts.

        Pending favorites are kept: they belong to the device until the next
        explicit logout or successful login sync.
        """

        if self._token is None and self._user is None:
            return
        logger.info("Session token rejected by the API; clearing stored credentials")
        await self._clear_credentials()


__all__ = ["INVALID_RESPONSE_MESSAGE", "SessionManager"]
