"""Owner inbox operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from barryland.client.http import BarrylandApiClient
from barryland.schemas.message import ContactOwnerRequest, MessageItem, MessagePage


class MessageService:
    def __init__(self, api: BarrylandApiClient) -> None:
        self._api = api

    async def get_messages(
        self,
        page: int = 1,
        limit: int = 20,
        property_id: str | None = None,
        status: str | None = None,
    ) -> MessagePage:
        return await self._api.get_messages(
            page=page, limit=limit, property_id=property_id or None, status=status or None
        )

    async def get_message(self, message_id: str) -> MessageItem:
        return await self._api.get_message(message_id)

    async def update_message(
        self, message_id: str, *, status: str | None = None, read: bool | None = None
    ) -> MessageItem:
        return await self._api.update_message(message_id, status=status, read=read)

    async def contact_owner(self, request: ContactOwnerRequest | Mapping[str, Any]) -> MessageItem:
        """Send a message about a listing to its owner."""

        if not isinstance(request, ContactOwnerRequest):
            request = ContactOwnerRequest.model_validate(request)
        return await self._api.contact_owner(
            request.model_dump(by_alias=True, exclude_none=True)
        )


__all__ = ["MessageService"]
