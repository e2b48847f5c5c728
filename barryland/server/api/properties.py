"""Listing routes, owner CRUD and the favorite toggle."""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from barryland.client.errors import PROPERTY_NOT_FOUND_MESSAGE
from barryland.favorites.identifiers import is_canonical_id
from barryland.server.repository import DocumentStore
from barryland.server.security import get_current_user, get_optional_user, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

FORBIDDEN_MESSAGE = "Accès non autorisé"
_CLIENT_PROTECTED_FIELDS = {"_id", "id", "owner", "status", "favorites", "createdAt", "updatedAt"}


def _serialize(document: dict[str, Any], favorite_ids: set[str]) -> dict[str, Any]:
    document["id"] = document["_id"]
    document["isFavorite"] = document["_id"] in favorite_ids
    return document


def _favorite_ids(user: dict[str, Any] | None) -> set[str]:
    return set(user["favorites"]) if user else set()


def _load_property(store: DocumentStore, property_id: str) -> dict[str, Any]:
    if not is_canonical_id(property_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Identifiant invalide")
    document = store.get_property(property_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROPERTY_NOT_FOUND_MESSAGE)
    return document


def _ensure_owner(document: dict[str, Any], user: dict[str, Any]) -> None:
    if document.get("owner") != user["_id"] and user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_MESSAGE)


def _writable(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in _CLIENT_PROTECTED_FIELDS}


@router.get("")
async def list_properties(
    transaction_type: str | None = Query(None, alias="transactionType"),
    property_type: str | None = Query(None, alias="propertyType"),
    city: str | None = Query(None),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    status_filter: str | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    user: dict[str, Any] | None = Depends(get_optional_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Public listing; only validated properties unless ``status`` says otherwise."""

    filters = {
        "transactionType": transaction_type,
        "propertyType": property_type,
        "city": city,
        "minPrice": min_price,
        "maxPrice": max_price,
        "status": status_filter,
    }
    documents, total = store.list_properties(filters, page=page, limit=limit)
    favorite_ids = _favorite_ids(user)
    return {
        "success": True,
        "data": {
            "properties": [_serialize(document, favorite_ids) for document in documents],
            "pagination": {
                "current": page,
                "pages": max(1, math.ceil(total / limit)),
                "total": total,
            },
        },
    }


@router.get("/user/my-properties")
async def my_properties(
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    favorite_ids = _favorite_ids(user)
    owned = [_serialize(document, favorite_ids) for document in store.properties_owned_by(user["_id"])]
    return {"success": True, "data": {"properties": owned}}


@router.get("/{property_id}")
async def get_property(
    property_id: str,
    user: dict[str, Any] | None = Depends(get_optional_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    document = _load_property(store, property_id)
    return {"success": True, "data": {"property": _serialize(document, _favorite_ids(user))}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    payload: dict[str, Any] = Body(...),
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Create a listing; it stays ``en_attente`` until moderation validates it."""

    document = store.create_property(user["_id"], _writable(payload))
    return {
        "success": True,
        "message": "Propriété créée avec succès. Elle sera visible après validation.",
        "data": {"property": _serialize(document, _favorite_ids(user))},
    }


@router.put("/{property_id}")
async def update_property(
    property_id: str,
    payload: dict[str, Any] = Body(...),
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    document = _load_property(store, property_id)
    _ensure_owner(document, user)
    updated = store.update_property(property_id, _writable(payload))
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROPERTY_NOT_FOUND_MESSAGE)
    return {
        "success": True,
        "message": "Propriété mise à jour avec succès",
        "data": {"property": _serialize(updated, _favorite_ids(user))},
    }


@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    document = _load_property(store, property_id)
    _ensure_owner(document, user)
    store.delete_property(property_id)
    logger.info("Property %s deleted by %s", property_id, user["_id"])
    return {"success": True, "message": "Propriété supprimée avec succès"}


@router.post("/{property_id}/favorite")
async def toggle_favorite(
    property_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Add the property to the caller's favorites, or remove it if already there."""

    _load_property(store, property_id)
    is_favorite, count = store.toggle_favorite(user["_id"], property_id)
    logger.info(
        "Favorite %s: user=%s property=%s",
        "added" if is_favorite else "removed",
        user["_id"],
        property_id,
    )
    document = store.get_property(property_id) or {}
    favorite_ids = {property_id} if is_favorite else set()
    return {
        "success": True,
        "message": "Ajouté aux favoris" if is_favorite else "Retiré des favoris",
        "data": {
            "property": _serialize(document, favorite_ids),
            "isFavorite": is_favorite,
            "favoritesCount": count,
        },
    }
