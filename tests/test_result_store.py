"""Tests for the in-memory result store."""

from datetime import datetime, timedelta

import pytest

from utils.cache import ResultStore


@pytest.mark.asyncio
async def test_set_and_get():
    store = ResultStore()
    await store.set("k", {"value": 1})
    assert await store.get("k") == {"value": 1}
    assert await store.get("missing") is None
    assert store.size == 1


@pytest.mark.asyncio
async def test_expired_entries_are_dropped():
    store = ResultStore(default_ttl=60)
    await store.set("k", "v")
    value, _, ttl = store._entries["k"]
    store._entries["k"] = (value, datetime.now() - timedelta(seconds=61), ttl)

    assert await store.get("k") is None
    assert store.size == 0


@pytest.mark.asyncio
async def test_oldest_entries_evicted():
    store = ResultStore(max_entries=2)
    await store.set("a", 1)
    await store.set("b", 2)
    await store.set("a", 3)
    await store.set("c", 4)

    assert await store.get("b") is None
    assert await store.get("a") == 3
    assert await store.get("c") == 4


@pytest.mark.asyncio
async def test_delete_and_clear():
    store = ResultStore()
    for key in ("a", "b", "c"):
        await store.set(key, key)

    await store.delete("a")
    assert await store.get("a") is None

    assert await store.clear() == 2
    assert store.size == 0
    assert await store.clear() == 0


def test_make_key_is_stable():
    key = ResultStore.make_key("traffic", {"density": 50, "signal_timing": 60}, location="Dhaka")
    same = ResultStore.make_key("traffic", {"signal_timing": 60, "density": 50}, location="Dhaka")
    other = ResultStore.make_key("traffic", {"density": 51, "signal_timing": 60}, location="Dhaka")

    assert key == same
    assert key != other
    assert len(key) == 32
