"""
Tests for KeyValueStore implementations.
Validates both InMemoryKeyValueStore and RedisKeyValueStore.
"""
import uuid
from datetime import datetime, timedelta

import pytest

from handoff.store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    create_kv_store,
)


# ===========================
# Fixtures
# ===========================

@pytest.fixture
async def redis_store():
    """Redis store on the test database, skipped when no server answers."""
    store = RedisKeyValueStore(
        redis_url="redis://localhost:6379/15",
        key_prefix=f"test:{uuid.uuid4().hex[:8]}:"
    )

    if not await store.ping():
        await store.close()
        pytest.skip("Redis not running")

    yield store

    leftovers = await store.keys("*")
    if leftovers:
        await store.delete(*leftovers)
    await store.close()


@pytest.fixture(params=["in_memory", "redis"])
def kv_store(request):
    """Run each contract test against both backends."""
    if request.param == "in_memory":
        return InMemoryKeyValueStore()
    return request.getfixturevalue("redis_store")


# ===========================
# Factory Tests
# ===========================

@pytest.mark.unit
def test_create_in_memory_store():
    store = create_kv_store("in_memory")
    assert isinstance(store, InMemoryKeyValueStore)
    assert isinstance(store, KeyValueStore)


@pytest.mark.unit
def test_create_store_accepts_enum():
    from handoff.config import KVStoreType

    assert isinstance(create_kv_store(KVStoreType.IN_MEMORY), InMemoryKeyValueStore)


@pytest.mark.unit
def test_create_unknown_store_raises():
    with pytest.raises(ValueError, match="Unknown store type"):
        create_kv_store("memcached")


# ===========================
# Contract Tests (both backends)
# ===========================

@pytest.mark.asyncio
async def test_get_set_delete(kv_store):
    assert await kv_store.get("missing") is None

    await kv_store.set("session:a", "one")
    assert await kv_store.get("session:a") == "one"

    await kv_store.set("session:a", "two")
    assert await kv_store.get("session:a") == "two"

    assert await kv_store.delete("session:a", "session:never") == 1
    assert await kv_store.get("session:a") is None
    assert await kv_store.delete("session:a") == 0


@pytest.mark.asyncio
async def test_set_if_absent(kv_store):
    assert await kv_store.set_if_absent("start:s1", "1", ttl=60) is True
    assert await kv_store.set_if_absent("start:s1", "2", ttl=60) is False
    assert await kv_store.get("start:s1") == "1"


@pytest.mark.asyncio
async def test_keys_pattern(kv_store):
    await kv_store.set("contact:1", "a")
    await kv_store.set("contact:2", "b")
    await kv_store.set("session:1", "c")
    await kv_store.sadd("assign:academy:registration", "U1")

    assert sorted(await kv_store.keys("contact:*")) == ["contact:1", "contact:2"]
    assert await kv_store.keys("assign:*") == ["assign:academy:registration"]
    assert await kv_store.keys("thread:*") == []


@pytest.mark.asyncio
async def test_set_operations(kv_store):
    assert await kv_store.sadd("roles", "academy", "vip") == 2
    assert await kv_store.sadd("roles", "academy") == 0
    assert await kv_store.smembers("roles") == {"academy", "vip"}

    assert await kv_store.srem("roles", "vip", "unknown") == 1
    assert await kv_store.smembers("roles") == {"academy"}

    # An emptied set disappears
    await kv_store.srem("roles", "academy")
    assert await kv_store.smembers("roles") == set()
    assert await kv_store.keys("roles") == []


@pytest.mark.asyncio
async def test_write_batch_writes_and_deletes(kv_store):
    await kv_store.set("thread:old", "s1")

    await kv_store.write_batch(
        {"session:s1": "{}", "thread:new": "s1"},
        delete_keys=["thread:old"]
    )

    assert await kv_store.get("session:s1") == "{}"
    assert await kv_store.get("thread:new") == "s1"
    assert await kv_store.get("thread:old") is None


@pytest.mark.asyncio
async def test_health_check(kv_store):
    health = await kv_store.health_check()

    assert health["healthy"] is True
    assert await kv_store.keys("health_check:*") == []


# ===========================
# In-Memory Specifics
# ===========================

@pytest.mark.asyncio
async def test_in_memory_ttl_expiry():
    store = InMemoryKeyValueStore()
    await store.set("broadcast:1", "draft", ttl=60)
    assert await store.get("broadcast:1") == "draft"

    store.expiry["broadcast:1"] = datetime.utcnow() - timedelta(seconds=1)

    assert await store.get("broadcast:1") is None
    assert await store.set_if_absent("broadcast:1", "again") is True


@pytest.mark.asyncio
async def test_in_memory_set_without_ttl_clears_expiry():
    store = InMemoryKeyValueStore()
    await store.set("k", "v", ttl=60)
    await store.set("k", "v2")

    assert "k" not in store.expiry


@pytest.mark.asyncio
async def test_in_memory_stats():
    store = InMemoryKeyValueStore()
    await store.set("a", "1")
    await store.sadd("roles", "x")

    stats = await store.get_stats()

    assert stats["store_type"] == "in_memory"
    assert stats["string_keys"] == 1
    assert stats["set_keys"] == 1
