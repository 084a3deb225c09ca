import asyncio
import base64

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from vision_mcp.errors import StoreUnavailable
from vision_mcp.store import InMemoryCredentialStore, RedisCredentialStore

ENCRYPTION_KEY = base64.b64encode(b"k" * 32).decode("ascii")


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.calls = []
        self.pings = 0
        self.down = False
        self.hang = False
        self.closed = False

    async def _io(self):
        if self.hang:
            await asyncio.sleep(3600)
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self.pings += 1
        await self._io()
        return True

    async def get(self, key):
        self.calls.append(("get", key))
        await self._io()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.calls.append(("set", key, value, ex))
        await self._io()
        self.data[key] = value
        return True

    async def delete(self, key):
        self.calls.append(("delete", key))
        await self._io()
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self):
        self.closed = True


def make_store(fake, encryption_key=""):
    store = RedisCredentialStore(
        url="redis://fake:6379",
        encryption_key=encryption_key,
        timeout_seconds=0.05,
        reconnect_interval_seconds=0.01,
    )
    store._client = fake
    return store


async def wait_until_ready(store, attempts=200):
    for _ in range(attempts):
        if store.ready:
            return
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_connect_is_idempotent():
    fake = FakeRedis()
    store = make_store(fake)

    await store.connect()
    await store.connect()

    assert store.ready
    assert fake.pings == 1
    await store.close()
    assert fake.closed
    assert not store.ready


@pytest.mark.asyncio
async def test_get_returns_none_for_unbound_key():
    store = make_store(FakeRedis())
    await store.connect()

    assert await store.get("missing") is None
    await store.close()


@pytest.mark.asyncio
async def test_set_get_delete_use_namespaced_keys():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()

    await store.set("sess-1", "key-123", ttl_seconds=60)
    assert fake.calls[-1] == ("set", "credential:sess-1", "key-123", 60)
    assert await store.get("sess-1") == "key-123"

    await store.delete("sess-1")
    await store.delete("sess-1")
    assert await store.get("sess-1") is None
    await store.close()


@pytest.mark.asyncio
async def test_set_without_ttl_has_no_expiry():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()

    await store.set("sess-1", "key-123")

    assert fake.calls[-1] == ("set", "credential:sess-1", "key-123", None)
    await store.close()


@pytest.mark.asyncio
async def test_operations_fail_fast_when_never_connected():
    fake = FakeRedis()
    store = make_store(fake)

    with pytest.raises(StoreUnavailable):
        await store.get("sess-1")
    assert fake.calls == []


@pytest.mark.asyncio
async def test_connect_failure_does_not_raise_and_reconnects_in_background():
    fake = FakeRedis()
    fake.down = True
    store = make_store(fake)

    await store.connect()
    assert not store.ready
    with pytest.raises(StoreUnavailable):
        await store.get("sess-1")
    assert fake.calls == []

    fake.down = False
    await wait_until_ready(store)

    assert store.ready
    assert fake.pings >= 2
    assert await store.get("sess-1") is None
    await store.close()


@pytest.mark.asyncio
async def test_connection_loss_surfaces_store_unavailable():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()
    await store.set("sess-1", "key-123")

    fake.down = True
    with pytest.raises(StoreUnavailable) as exc:
        await store.get("sess-1")

    assert exc.value.code == "STORE_UNAVAILABLE"
    assert exc.value.status == 503
    assert not store.ready

    fake.down = False
    await wait_until_ready(store)
    assert await store.get("sess-1") == "key-123"
    await store.close()


@pytest.mark.asyncio
async def test_hung_backend_times_out_as_unavailable():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()

    fake.hang = True
    with pytest.raises(StoreUnavailable) as exc:
        await store.get("sess-1")

    assert "timed out" in exc.value.message
    assert not store.ready
    await store.close()


@pytest.mark.asyncio
async def test_command_error_is_unavailable_but_keeps_connection():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()

    async def broken_get(_key):
        raise ResponseError("WRONGTYPE")

    fake.get = broken_get
    with pytest.raises(StoreUnavailable):
        await store.get("sess-1")

    assert store.ready
    await store.close()


@pytest.mark.asyncio
async def test_values_are_encrypted_at_rest():
    fake = FakeRedis()
    store = make_store(fake, encryption_key=ENCRYPTION_KEY)
    await store.connect()

    await store.set("sess-1", "key-123")

    stored = fake.data["credential:sess-1"]
    assert "key-123" not in stored
    assert len(base64.b64decode(stored)) > 12
    assert await store.get("sess-1") == "key-123"
    await store.close()


@pytest.mark.asyncio
async def test_undecryptable_value_is_not_reported_as_absent():
    fake = FakeRedis()
    store = make_store(fake, encryption_key=ENCRYPTION_KEY)
    await store.connect()
    fake.data["credential:sess-1"] = base64.b64encode(b"x" * 40).decode("ascii")

    with pytest.raises(StoreUnavailable):
        await store.get("sess-1")
    await store.close()


def test_encryption_key_must_be_32_bytes():
    short_key = base64.b64encode(b"short").decode("ascii")
    with pytest.raises(ValueError):
        RedisCredentialStore(url="redis://fake", encryption_key=short_key)


@pytest.mark.asyncio
async def test_in_memory_store_expires_bindings(monkeypatch):
    store = InMemoryCredentialStore()
    await store.connect()

    fixed_now = 1_700_000_000
    monkeypatch.setattr(store, "now", lambda: fixed_now)
    await store.set("sess-1", "key-123", ttl_seconds=60)
    await store.set("sess-2", "key-456")

    monkeypatch.setattr(store, "now", lambda: fixed_now + 61)

    assert await store.get("sess-1") is None
    assert await store.get("sess-2") == "key-456"


@pytest.mark.asyncio
async def test_in_memory_store_requires_connect():
    store = InMemoryCredentialStore()

    with pytest.raises(StoreUnavailable) as exc:
        await store.get("sess-1")
    assert exc.value.message == "Credential store unavailable"

    await store.connect()
    await store.connect()
    assert store.ready
    await store.close()
    with pytest.raises(StoreUnavailable):
        await store.set("sess-1", "key-123")


@pytest.mark.asyncio
async def test_concurrent_failures_share_one_reconnect_task():
    fake = FakeRedis()
    store = make_store(fake)
    await store.connect()

    fake.down = True
    results = await asyncio.gather(
        *(store.get(f"sess-{i}") for i in range(5)), return_exceptions=True
    )

    assert all(isinstance(result, StoreUnavailable) for result in results)
    task = store._reconnect_task
    assert task is not None and not task.done()

    await asyncio.gather(
        *(store.delete(f"sess-{i}") for i in range(3)), return_exceptions=True
    )
    assert store._reconnect_task is task
    await store.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_reconnect():
    fake = FakeRedis()
    fake.down = True
    store = make_store(fake)

    await store.connect()
    task = store._reconnect_task
    assert task is not None

    results = await asyncio.gather(
        *(store.get(f"sess-{i}") for i in range(5)), return_exceptions=True
    )
    assert all(isinstance(result, StoreUnavailable) for result in results)
    assert store._reconnect_task is task

    await store.close()

    assert task.cancelled()
    assert store._reconnect_task is None
    assert fake.closed
    assert not store.ready
