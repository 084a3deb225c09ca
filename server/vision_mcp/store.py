import asyncio
import base64
import contextlib
import os
import time
from typing import Protocol

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .config import settings
from .errors import StoreUnavailable

logger = structlog.get_logger(__name__)

_CONNECTIVITY_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CredentialStore(Protocol):
    @property
    def ready(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


def _load_cipher(encryption_key: str | None) -> AESGCM | None:
    if not encryption_key:
        return None
    key = base64.b64decode(encryption_key)
    if len(key) != 32:
        raise ValueError("REDIS_ENCRYPTION_KEY must be 32 bytes (base64-encoded)")
    return AESGCM(key)


class RedisCredentialStore:
    """Session credentials in Redis, shared by every server instance.

    One client is shared by all tasks. Each operation is a single round trip
    bounded by ``timeout_seconds``; a connectivity failure marks the store as
    not ready and starts a background reconnect loop. While not ready, every
    operation fails fast with ``StoreUnavailable``.
    """

    def __init__(
        self,
        url: str | None = None,
        encryption_key: str | None = None,
        timeout_seconds: float | None = None,
        reconnect_interval_seconds: float | None = None,
    ) -> None:
        self._url = url or settings.redis_url
        self._timeout = timeout_seconds or settings.store_timeout_seconds
        self._reconnect_interval = (
            reconnect_interval_seconds or settings.store_reconnect_interval_seconds
        )
        self._aesgcm = _load_cipher(
            encryption_key if encryption_key is not None else settings.redis_encryption_key
        )
        self._client = None
        self._ready = False
        self._reconnect_task: asyncio.Task | None = None

    @property
    def ready(self) -> bool:
        return self._ready and self._client is not None

    def _key(self, value: str) -> str:
        return f"credential:{value}"

    async def connect(self) -> None:
        if self.ready:
            return
        if self._client is None:
            self._client = aioredis.Redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=self._timeout,
            )
        try:
            await asyncio.wait_for(self._client.ping(), timeout=self._timeout)
        except (asyncio.TimeoutError, *_CONNECTIVITY_ERRORS) as exc:
            logger.error("store_connect_failed", error=str(exc) or type(exc).__name__)
            self._schedule_reconnect()
            return
        self._ready = True
        logger.info("store_connected")

    async def close(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        client, self._client = self._client, None
        self._ready = False
        if client is not None:
            await client.aclose()
            logger.info("store_closed")

    async def get(self, key: str) -> str | None:
        raw = await self._call("get", self._client_op("get", self._key(key)))
        if raw is None:
            return None
        return self._unseal(raw)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        sealed = self._seal(value)
        if ttl_seconds:
            op = self._client_op("set", self._key(key), sealed, ex=ttl_seconds)
        else:
            op = self._client_op("set", self._key(key), sealed)
        await self._call("set", op)

    async def delete(self, key: str) -> None:
        await self._call("delete", self._client_op("delete", self._key(key)))

    def _client_op(self, name: str, *args, **kwargs):
        if not self.ready:
            raise StoreUnavailable()
        return getattr(self._client, name)(*args, **kwargs)

    async def _call(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("store_timeout", operation=operation, timeout=self._timeout)
            self._mark_down()
            raise StoreUnavailable("Credential store timed out") from exc
        except _CONNECTIVITY_ERRORS as exc:
            logger.error("store_connection_lost", operation=operation, error=str(exc))
            self._mark_down()
            raise StoreUnavailable() from exc
        except RedisError as exc:
            logger.error("store_command_failed", operation=operation, error=str(exc))
            raise StoreUnavailable(f"Credential store error: {exc}") from exc

    def _mark_down(self) -> None:
        self._ready = False
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while not self._ready and self._client is not None:
            await asyncio.sleep(self._reconnect_interval)
            attempt += 1
            try:
                await asyncio.wait_for(self._client.ping(), timeout=self._timeout)
            except (asyncio.TimeoutError, RedisError, OSError) as exc:
                logger.warning(
                    "store_reconnect_failed",
                    attempt=attempt,
                    error=str(exc) or type(exc).__name__,
                )
                continue
            self._ready = True
            logger.info("store_reconnected", attempt=attempt)

    def _seal(self, value: str) -> str:
        if self._aesgcm is None:
            return value
        nonce = os.urandom(12)
        ciphertext = self._aesgcm.encrypt(nonce, value.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def _unseal(self, payload: str) -> str:
        if self._aesgcm is None:
            return payload
        try:
            raw = base64.b64decode(payload)
            if len(raw) < 13:
                raise ValueError("Invalid encrypted payload")
            return self._aesgcm.decrypt(raw[:12], raw[12:], None).decode("utf-8")
        except (InvalidTag, ValueError) as exc:
            logger.error("credential_decrypt_failed", error=type(exc).__name__)
            raise StoreUnavailable("Stored credential could not be decrypted") from exc


class InMemoryCredentialStore:
    def __init__(self) -> None:
        self._store: dict[str, tuple[float | None, str]] = {}
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def _key(self, value: str) -> str:
        return f"credential:{value}"

    async def connect(self) -> None:
        self._ready = True

    async def close(self) -> None:
        self._ready = False

    async def get(self, key: str) -> str | None:
        self._require_ready()
        entry = self._store.get(self._key(key))
        if not entry:
            return None
        expires_at, value = entry
        if expires_at is not None and self.now() >= expires_at:
            self._store.pop(self._key(key), None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._require_ready()
        expires_at = self.now() + ttl_seconds if ttl_seconds else None
        self._store[self._key(key)] = (expires_at, value)

    async def delete(self, key: str) -> None:
        self._require_ready()
        self._store.pop(self._key(key), None)

    def now(self) -> float:
        return time.time()

    def _require_ready(self) -> None:
        if not self._ready:
            raise StoreUnavailable()


def create_store() -> CredentialStore:
    if settings.cache_mode.lower() == "memory":
        return InMemoryCredentialStore()
    return RedisCredentialStore()
