"""Schemas for the owner inbox (messages sent about a listing)."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageStatus = Literal["nouveau", "lu", "repondu", "archive"]


class MessageItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    email: str | None = None
    phone: str | None = None
    property: dict[str, Any] | str | None = None
    message: str
    created_at: str = Field(..., alias="createdAt")
    status: str = "nouveau"
    read: bool = False


class MessagePage(BaseModel):
    messages: list[MessageItem] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    pages: int = 1


class ContactOwnerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    property_id: str = Field(..., alias="propertyId")
    first_name: str | None = Field(None, alias="firstName", max_length=100)
    last_name: str | None = Field(None, alias="lastName", max_length=100)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=32)
    message: str = Field(..., min_length=1, max_length=2000)


class MessageUpdate(BaseModel):
    status: MessageStatus | None = None
    read: bool | None = None


__all__ = [
    "ContactOwnerRequest",
    "MessageItem",
    "MessagePage",
    "MessageStatus",
    "MessageUpdate",
]
