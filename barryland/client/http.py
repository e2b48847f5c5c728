"""Async HTTP client for the BarryLand REST API built on ``httpx``.

Every endpoint answers with an envelope ``{"success", "message", "data"}``.
The helpers below unwrap ``data`` on success and translate failures into the
exceptions defined in :mod:`barryland.client.errors`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from barryland.client.errors import ApiError, NetworkError, error_for_status
from barryland.schemas.auth import AuthResponse, User
from barryland.schemas.favorites import FavoriteToggleResult
from barryland.schemas.message import MessageItem, MessagePage
from barryland.schemas.property import Property, normalize_property

logger = logging.getLogger(__name__)

SKIP_AUTH_REDIRECT_HEADER = "X-Skip-Auth-Redirect"

TokenProvider = Callable[[], str | None]
UnauthorizedHook = Callable[[], Awaitable[None]]


def _extract_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}", None
    if isinstance(payload, Mapping):
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str) and message:
            return message, payload
    return response.reason_phrase or f"HTTP {response.status_code}", payload


def _unwrap(payload: Any) -> Any:
    """Return ``payload["data"]`` when present, otherwise the payload itself."""

    if isinstance(payload, Mapping) and "data" in payload:
        return payload["data"]
    return payload


def _property_list(data: Any) -> list[Property]:
    if isinstance(data, Mapping):
        data = data.get("properties", [])
    if not isinstance(data, list):
        return []
    return [normalize_property(item) for item in data if isinstance(item, Mapping)]


class BarrylandApiClient:
    """Thin typed wrapper over the BarryLand endpoints the client core uses.

    ``token_provider`` is consulted on every request so the session can swap
    tokens without rebuilding the client.  ``on_unauthorized`` runs when a
    request fails with 401 unless the caller opted out with
    ``skip_auth_redirect``; the session uses it to forget an expired token.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._token_provider = token_provider or (lambda: None)
        self._on_unauthorized: UnauthorizedHook | None = None

    def set_token_provider(self, provider: TokenProvider) -> None:
        self._token_provider = provider

    def set_unauthorized_hook(self, hook: UnauthorizedHook | None) -> None:
        self._on_unauthorized = hook

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BarrylandApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        skip_auth_redirect: bool = False,
        authenticated: bool = True,
    ) -> Any:
        headers: dict[str, str] = {}
        token = self._token_provider() if authenticated else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if skip_auth_redirect:
            headers[SKIP_AUTH_REDIRECT_HEADER] = "1"
        if params is not None:
            params = {key: value for key, value in params.items() if value is not None}

        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed before a response arrived: %s", method, path, exc)
            raise NetworkError(f"Erreur réseau: {exc}") from exc

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(
                    "Réponse du serveur invalide", status_code=response.status_code
                ) from exc

        message, payload = _extract_message(response)
        error = error_for_status(response.status_code, message, payload)
        if response.status_code == 401:
            logger.debug("%s %s returned 401: %s", method, path, message)
            if not skip_auth_redirect and self._on_unauthorized is not None:
                await self._on_unauthorized()
        else:
            logger.info(
                "%s %s returned %s: %s", method, path, response.status_code, message
            )
        raise error

    # -- auth -------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResponse:
        payload = await self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            skip_auth_redirect=True,
            authenticated=False,
        )
        return AuthResponse.model_validate(payload)

    async def register(self, user_data: Mapping[str, Any]) -> AuthResponse:
        payload = await self._request(
            "POST",
            "/auth/register",
            json=dict(user_data),
            skip_auth_redirect=True,
            authenticated=False,
        )
        return AuthResponse.model_validate(payload)

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout", skip_auth_redirect=True)

    async def get_me(self, *, skip_auth_redirect: bool = False) -> User:
        """Return the authenticated user with populated favorites."""

        data = _unwrap(
            await self._request("GET", "/auth/me", skip_auth_redirect=skip_auth_redirect)
        )
        if isinstance(data, Mapping) and "user" in data:
            data = data["user"]
        return User.model_validate(data)

    # -- properties -------------------------------------------------------------

    async def list_properties(self, filters: Mapping[str, Any] | None = None) -> list[Property]:
        data = _unwrap(await self._request("GET", "/properties", params=filters))
        return _property_list(data)

    async def my_properties(self) -> list[Property]:
        data = _unwrap(await self._request("GET", "/properties/user/my-properties"))
        return _property_list(data)

    async def get_property(self, property_id: str) -> Property:
        data = _unwrap(await self._request("GET", f"/properties/{property_id}"))
        if isinstance(data, Mapping) and "property" in data:
            data = data["property"]
        return normalize_property(data)

    async def create_property(self, property_data: Mapping[str, Any]) -> Property:
        data = _unwrap(await self._request("POST", "/properties", json=dict(property_data)))
        if isinstance(data, Mapping) and "property" in data:
            data = data["property"]
        return normalize_property(data)

    async def update_property(
        self, property_id: str, property_data: Mapping[str, Any]
    ) -> Property | None:
        payload = await self._request(
            "PUT", f"/properties/{property_id}", json=dict(property_data)
        )
        # Some deployments acknowledge the update without echoing the document.
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if isinstance(data, Mapping) and "property" in data:
            data = data["property"]
        if not isinstance(data, Mapping) or not data:
            return None
        return normalize_property(data)

    async def delete_property(self, property_id: str) -> None:
        await self._request("DELETE", f"/properties/{property_id}")

    async def toggle_favorite(
        self, property_id: str, *, skip_auth_redirect: bool = False
    ) -> FavoriteToggleResult:
        data = _unwrap(
            await self._request(
                "POST",
                f"/properties/{property_id}/favorite",
                skip_auth_redirect=skip_auth_redirect,
            )
        )
        if not isinstance(data, Mapping):
            return FavoriteToggleResult()
        returned = data.get("property")
        return FavoriteToggleResult(
            isFavorite=data.get("isFavorite") if isinstance(data.get("isFavorite"), bool) else None,
            favoritesCount=data.get("favoritesCount"),
            property=normalize_property(returned) if isinstance(returned, Mapping) else None,
        )

    # -- messages ---------------------------------------------------------------

    async def get_messages(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        property_id: str | None = None,
        status: str | None = None,
    ) -> MessagePage:
        params = {"page": page, "limit": limit, "propertyId": property_id, "status": status}
        data = _unwrap(await self._request("GET", "/messages", params=params))
        return MessagePage.model_validate(data or {})

    async def get_message(self, message_id: str) -> MessageItem:
        data = _unwrap(await self._request("GET", f"/messages/{message_id}"))
        return MessageItem.model_validate(data)

    async def update_message(
        self, message_id: str, *, status: str | None = None, read: bool | None = None
    ) -> MessageItem:
        body = {key: value for key, value in {"status": status, "read": read}.items() if value is not None}
        data = _unwrap(await self._request("PATCH", f"/messages/{message_id}", json=body))
        return MessageItem.model_validate(data)

    async def contact_owner(self, payload: Mapping[str, Any]) -> MessageItem:
        data = _unwrap(await self._request("POST", "/messages", json=dict(payload)))
        return MessageItem.model_validate(data)


__all__ = ["BarrylandApiClient", "SKIP_AUTH_REDIRECT_HEADER"]
