"""Centralized configuration management for the BarryLand client and server."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables defined in a local .env file before instantiating the
# settings singleton so every consumer of :mod:`barryland.settings` sees the same
# values regardless of import order.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_STORAGE_NAMESPACE = "barryland"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_JWT_SECRET = "dev_jwt_secret_for_local_testing_only"
DEFAULT_JWT_EXPIRE_DAYS = 7


def _normalize_origin(origin: str) -> str:
    """Return the origin stripped of whitespace and trailing slashes."""

    return origin.strip().rstrip("/")


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    The client side reads the API location, request timeout and storage
    backend from here; the reference server reuses the logging and CORS
    entries and signs its bearer tokens with ``jwt_secret``.  Tracking which
    values were supplied explicitly lets :meth:`optional_config_warnings` flag
    silent fallbacks at startup.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)
    _explicit_cors_allow_origins: bool = PrivateAttr(default=False)
    _explicit_jwt_secret: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        self._explicit_cors_allow_origins = (
            "cors_allow_origins_raw" in normalized_keys
            or "cors_allow_origins" in normalized_keys
        )
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True
        cors_env = os.getenv("CORS_ALLOW_ORIGINS")
        if cors_env is not None and cors_env.strip():
            self._explicit_cors_allow_origins = True
        self._explicit_jwt_secret = "jwt_secret" in normalized_keys or bool(
            (os.getenv("JWT_SECRET") or "").strip()
        )

    api_base_url: str = Field(
        default=DEFAULT_API_URL,
        alias="BARRYLAND_API_URL",
        description="Base URL of the BarryLand REST API, including the /api prefix.",
    )
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        alias="BARRYLAND_REQUEST_TIMEOUT",
        gt=0,
        description="Timeout applied to every outbound API request.",
    )
    redis_url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description=(
            "Redis connection string backing the client storage (auth token and"
            " pending favorites). When unset the storage lives in process memory"
            " and does not survive a restart."
        ),
    )
    storage_namespace: str = Field(
        default=DEFAULT_STORAGE_NAMESPACE,
        alias="BARRYLAND_STORAGE_NAMESPACE",
        min_length=1,
        description=(
            "Prefix applied to every storage key. Use one namespace per device or"
            " browser profile so pending favorites never leak between them."
        ),
    )
    clear_unsynced_on_login: bool = Field(
        default=False,
        alias="BARRYLAND_CLEAR_UNSYNCED_ON_LOGIN",
        description=(
            "Empty the pending favorites outbox after the login sync even when some"
            " entries failed transiently. Disabled by default so those entries are"
            " retried later."
        ),
    )
    jwt_secret: str = Field(
        default=DEFAULT_JWT_SECRET,
        alias="JWT_SECRET",
        min_length=1,
        description="HMAC secret signing the reference server's bearer tokens.",
    )
    jwt_expire_days: int = Field(
        default=DEFAULT_JWT_EXPIRE_DAYS,
        alias="JWT_EXPIRE_DAYS",
        gt=0,
        description="Lifetime of bearer tokens issued by the reference server.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )
    cors_allow_origins_raw: str | None = Field(
        default=None,
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated list of CORS origins accepted by the reference server.",
    )

    @property
    def normalized_api_base_url(self) -> str:
        """Return the API base URL without a trailing slash."""

        return self.api_base_url.strip().rstrip("/")

    @property
    def cors_allow_origins(self) -> list[str]:
        """Return normalised CORS origins supplied via environment variables."""

        if not self.cors_allow_origins_raw:
            return []

        origins = [
            _normalize_origin(origin)
            for origin in self.cors_allow_origins_raw.split(",")
            if origin.strip()
        ]
        return [origin for origin in origins if origin]

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self._explicit_redis_url and not self.redis_url:
            warnings.append(
                "REDIS_URL is not set - client storage will use in-memory fallback "
                "(pending favorites and tokens are lost on restart)"
            )

        if not self._explicit_cors_allow_origins and not self.cors_allow_origins:
            warnings.append(
                "CORS_ALLOW_ORIGINS is not set - using default localhost origins only "
                "(may cause CORS issues in production)"
            )

        if not self._explicit_jwt_secret:
            warnings.append(
                "JWT_SECRET is not set - the reference server signs tokens with the "
                "development fallback secret"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_API_URL",
    "DEFAULT_JWT_EXPIRE_DAYS",
    "DEFAULT_JWT_SECRET",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_STORAGE_NAMESPACE",
    "get_settings",
]
