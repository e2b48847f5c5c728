"""Password hashing, signed bearer tokens and the FastAPI auth dependencies."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from barryland.server.repository import DocumentStore

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
JWT_ALGORITHM = "HS256"
# bcrypt only reads the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return the bcrypt hash stored on the user document."""

    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))
    except ValueError:
        # Not a bcrypt hash.
        return False


class TokenSigner:
    """Issues and verifies HS256 JWTs carrying the user id.

    Tokens are stateless; logout adds the token's ``jti`` to a denylist kept
    for the lifetime of the server process.
    """

    def __init__(
        self,
        secret: str,
        *,
        expires_in: timedelta = timedelta(days=7),
        algorithm: str = JWT_ALGORITHM,
    ) -> None:
        self._secret = secret
        self._expires_in = expires_in
        self._algorithm = algorithm
        self._revoked: set[str] = set()

    def issue(self, user_id: str) -> str:
        issued_at = datetime.now(timezone.utc)
        claims = {
            "userId": user_id,
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + self._expires_in,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str) -> dict[str, Any] | None:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "jti"]},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            return None

    def resolve(self, token: str) -> str | None:
        """Return the user id carried by ``token``, or ``None`` when it is unusable."""

        claims = self._decode(token)
        if claims is None or claims["jti"] in self._revoked:
            return None
        user_id = claims.get("userId")
        return str(user_id) if user_id else None

    def revoke(self, token: str) -> None:
        claims = self._decode(token)
        if claims is not None:
            self._revoked.add(claims["jti"])


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_tokens(request: Request) -> TokenSigner:
    return request.app.state.tokens


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: DocumentStore = Depends(get_store),
    tokens: TokenSigner = Depends(get_tokens),
) -> dict[str, Any] | None:
    """Return the authenticated user document, or ``None`` for anonymous calls."""

    if credentials is None:
        return None
    user_id = tokens.resolve(credentials.credentials)
    if user_id is None:
        return None
    return store.get_user(user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: DocumentStore = Depends(get_store),
    tokens: TokenSigner = Depends(get_tokens),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Accès refusé. Token manquant.",
        )
    user_id = tokens.resolve(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalide.")
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalide. Utilisateur non trouvé.",
        )
    return user


__all__ = [
    "BCRYPT_ROUNDS",
    "JWT_ALGORITHM",
    "TokenSigner",
    "bearer_scheme",
    "get_current_user",
    "get_optional_user",
    "get_store",
    "get_tokens",
    "hash_password",
    "verify_password",
]
