"""Authentication routes: register, login, profile and logout."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials

from barryland.schemas.auth import LoginRequest, RegisterRequest
from barryland.server.repository import DocumentStore
from barryland.server.security import (
    TokenSigner,
    bearer_scheme,
    get_current_user,
    get_store,
    get_tokens,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = "Email ou mot de passe incorrect"


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    store: DocumentStore = Depends(get_store),
    tokens: TokenSigner = Depends(get_tokens),
) -> dict[str, Any]:
    if store.find_user_by_email(payload.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Un utilisateur avec cet email existe déjà",
        )
    user = store.create_user(
        payload.model_dump(by_alias=True, exclude={"password"}),
        hash_password(payload.password),
    )
    logger.info("Registered user %s", user["_id"])
    return {
        "success": True,
        "message": "Compte créé avec succès",
        "data": {"token": tokens.issue(user["_id"]), "user": store.public_profile(user["_id"])},
    }


@router.post("/login")
async def login(
    payload: LoginRequest,
    store: DocumentStore = Depends(get_store),
    tokens: TokenSigner = Depends(get_tokens),
) -> dict[str, Any]:
    user = store.find_user_by_email(payload.email)
    if user is None or not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    return {
        "success": True,
        "message": "Connexion réussie",
        "data": {"token": tokens.issue(user["_id"]), "user": store.public_profile(user["_id"])},
    }


@router.get("/me")
async def me(
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Return the caller's profile with favorites populated as property documents."""

    return {"success": True, "data": store.public_profile(user["_id"])}


@router.post("/logout")
async def logout(
    user: dict[str, Any] = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenSigner = Depends(get_tokens),
) -> dict[str, Any]:
    if credentials is not None:
        tokens.revoke(credentials.credentials)
    return {"success": True, "message": "Déconnexion réussie"}
