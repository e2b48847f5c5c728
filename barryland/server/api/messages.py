"""Contact messages: visitors write to a listing's owner, owners read their inbox."""

from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from barryland.client.errors import PROPERTY_NOT_FOUND_MESSAGE
from barryland.favorites.identifiers import is_canonical_id
from barryland.schemas.message import ContactOwnerRequest, MessageStatus, MessageUpdate
from barryland.server.repository import DocumentStore
from barryland.server.security import get_current_user, get_optional_user, get_store

router = APIRouter()

MESSAGE_NOT_FOUND = "Message non trouvé"


def _present(document: dict[str, Any], store: DocumentStore) -> dict[str, Any]:
    property_id = document.get("property")
    listing = store.get_property(property_id) if isinstance(property_id, str) else None
    document["property"] = (
        {"_id": property_id, "title": listing.get("title")} if listing else property_id
    )
    document.pop("owner", None)
    return document


def _owned_message(store: DocumentStore, message_id: str, user: dict[str, Any]) -> dict[str, Any]:
    document = store.get_message(message_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=MESSAGE_NOT_FOUND)
    if document.get("owner") != user["_id"] and user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès non autorisé")
    return document


@router.get("")
async def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    property_id: str | None = Query(None, alias="propertyId"),
    status_filter: MessageStatus | None = Query(None, alias="status"),
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    messages = store.messages_for_owner(user["_id"], property_id=property_id, status=status_filter)
    start = (page - 1) * limit
    return {
        "success": True,
        "data": {
            "messages": [_present(doc, store) for doc in messages[start : start + limit]],
            "total": len(messages),
            "page": page,
            "pages": max(1, math.ceil(len(messages) / limit)),
        },
    }


@router.get("/{message_id}")
async def get_message(
    message_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    return {"success": True, "data": _present(_owned_message(store, message_id, user), store)}


@router.patch("/{message_id}")
async def update_message(
    message_id: str,
    payload: MessageUpdate,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    document = _owned_message(store, message_id, user)
    changes = payload.model_dump(exclude_none=True)
    if changes.get("read") and "status" not in changes and document.get("status") == "nouveau":
        changes["status"] = "lu"
    updated = store.update_message(message_id, changes) or document
    return {"success": True, "data": _present(updated, store)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def contact_owner(
    payload: ContactOwnerRequest,
    user: dict[str, Any] | None = Depends(get_optional_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    if not is_canonical_id(payload.property_id) or store.get_property(payload.property_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROPERTY_NOT_FOUND_MESSAGE)

    data = payload.model_dump(by_alias=True, exclude={"property_id"}, exclude_none=True)
    if user is not None:
        data.setdefault("firstName", user.get("firstName"))
        data.setdefault("lastName", user.get("lastName"))
        data.setdefault("email", user.get("email"))
        data["sender"] = user["_id"]
    document = store.create_message(payload.property_id, data)
    return {
        "success": True,
        "message": "Message envoyé avec succès",
        "data": _present(document, store),
    }
