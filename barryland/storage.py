"""Namespaced key/value storage standing in for the browser's ``localStorage``.

Values are JSON encoded.  Redis backs the storage when ``REDIS_URL`` is set and
reachable; otherwise an in-process dictionary keeps values for the lifetime of
the interpreter.  Redis connection failures never propagate: reads return
``None`` and writes become no-ops, matching how the web client treats an
unavailable ``localStorage``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from redis.asyncio import Redis as RedisClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "barrylandAuthToken"
USER_KEY = "barrylandUser"
LOCAL_FAVORITES_KEY = "barrylandLocalFavorites"

_redis_clients: dict[str, RedisClient] = {}
_disabled_urls: set[str] = set()
_client_lock = asyncio.Lock()


def _is_redis_connection_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` represents a Redis connection failure."""

    return isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError))


async def get_redis(redis_url: str | None) -> RedisClient | None:
    """Return a connected Redis client for ``redis_url`` or ``None``.

    A URL whose first connection attempt failed is remembered so later calls
    skip straight to the in-memory fallback instead of paying the connection
    timeout on every storage access.
    """

    if not redis_url:
        return None

    if redis_url in _disabled_urls:
        logger.debug("Redis connection disabled after previous failure; skipping attempt.")
        return None

    async with _client_lock:
        existing = _redis_clients.get(redis_url)
        if existing is not None:
            return existing

        if redis_url in _disabled_urls:
            return None

        client = RedisClient.from_url(redis_url, decode_responses=True, encoding="utf-8")
        try:
            await client.ping()
        except Exception as exc:  # noqa: BLE001 - narrowed below
            if _is_redis_connection_error(exc):
                logger.warning(
                    "Redis connection failed: %s. Client storage will stay in memory.", exc
                )
                _disabled_urls.add(redis_url)
                await client.aclose()
                return None
            raise

        _redis_clients[redis_url] = client
        logger.info("Redis connection established for client storage")
        return client


async def close_redis() -> None:
    """Close every Redis connection opened by :func:`get_redis`."""

    async with _client_lock:
        clients = list(_redis_clients.values())
        _redis_clients.clear()
        _disabled_urls.clear()
    for client in clients:
        await client.aclose()


class ClientStorage:
    """Async JSON key/value storage scoped to a namespace.

    ``redis`` may be ``None``, in which case values live in ``self._memory``.
    Each instance owns its own memory so two namespaces (two simulated
    browsers) never observe each other's values.
    """

    def __init__(self, redis: RedisClient | None = None, *, namespace: str = "barryland") -> None:
        self._redis = redis
        self._namespace = namespace
        self._memory: dict[str, str] = {}

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def persistent(self) -> bool:
        """``True`` when values survive a process restart."""

        return self._redis is not None

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get_raw(self, key: str) -> str | None:
        """Return the stored string for ``key`` without decoding it."""

        full_key = self._key(key)
        if self._redis is None:
            return self._memory.get(full_key)
        try:
            return await self._redis.get(full_key)
        except Exception as exc:  # noqa: BLE001 - narrowed below
            if _is_redis_connection_error(exc):
                logger.debug("Redis get failed for key %s: %s", full_key, exc)
                return None
            raise

    async def get_json(self, key: str) -> Any:
        """Return the decoded value for ``key``; malformed JSON reads as ``None``."""

        payload = await self.get_raw(key)
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Ignoring malformed JSON stored under %s", self._key(key))
            return None

    async def set_json(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, default=str)
        full_key = self._key(key)
        if self._redis is None:
            self._memory[full_key] = encoded
            return
        try:
            await self._redis.set(full_key, encoded)
        except Exception as exc:  # noqa: BLE001 - narrowed below
            if _is_redis_connection_error(exc):
                logger.debug("Redis set failed for key %s: %s", full_key, exc)
                return
            raise

    async def set_raw(self, key: str, value: str) -> None:
        """Store ``value`` verbatim (used by tests to plant corrupt payloads)."""

        full_key = self._key(key)
        if self._redis is None:
            self._memory[full_key] = value
            return
        try:
            await self._redis.set(full_key, value)
        except Exception as exc:  # noqa: BLE001 - narrowed below
            if _is_redis_connection_error(exc):
                logger.debug("Redis set failed for key %s: %s", full_key, exc)
                return
            raise

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        full_keys = [self._key(key) for key in keys]
        if self._redis is None:
            for full_key in full_keys:
                self._memory.pop(full_key, None)
            return
        try:
            await self._redis.delete(*full_keys)
        except Exception as exc:  # noqa: BLE001 - narrowed below
            if _is_redis_connection_error(exc):
                logger.debug("Redis delete failed: %s", exc)
                return
            raise


async def get_client_storage(redis_url: str | None, *, namespace: str) -> ClientStorage:
    """Build a :class:`ClientStorage`, preferring Redis when it is reachable."""

    redis = await get_redis(redis_url)
    return ClientStorage(redis, namespace=namespace)


__all__ = [
    "AUTH_TOKEN_KEY",
    "ClientStorage",
    "LOCAL_FAVORITES_KEY",
    "USER_KEY",
    "close_redis",
    "get_client_storage",
    "get_redis",
]
