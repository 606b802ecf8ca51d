"""
Memory store tests.

Tests cover the singleton, document expiry, key listing, usage record
isolation and reset.
"""

import datetime

import pytest

from tutor_api.models import GlobalUsageRecord
from tutor_api.storage.memory import MemoryStore

from tests.conftest import TODAY


def test_memory_store_is_singleton():
    assert MemoryStore() is MemoryStore()


@pytest.mark.asyncio
async def test_put_get_and_json(memory_store):
    await memory_store.put("plain", "value")
    await memory_store.put_json("doc", {"a": 1})

    assert await memory_store.get("plain") == "value"
    assert await memory_store.get_json("doc") == {"a": 1}
    assert await memory_store.get("missing") is None


@pytest.mark.asyncio
async def test_expired_documents_disappear(memory_store, monkeypatch):
    now = {"value": 1000.0}
    monkeypatch.setattr("tutor_api.storage.memory.time.time", lambda: now["value"])

    await memory_store.put("short-lived", "x", ttl_s=10)
    assert await memory_store.get("short-lived") == "x"

    now["value"] += 10
    assert await memory_store.get("short-lived") is None
    assert await memory_store.list_keys("short") == []


@pytest.mark.asyncio
async def test_list_keys_by_prefix(memory_store):
    await memory_store.put("conversations_b", "[]")
    await memory_store.put("conversations_a", "[]")
    await memory_store.put("response:abc", "{}")

    assert await memory_store.list_keys("conversations_") == ["conversations_a", "conversations_b"]


@pytest.mark.asyncio
async def test_returned_records_are_copies(memory_store):
    await memory_store.save_global_usage(GlobalUsageRecord(date=TODAY, question_count=1))

    record = await memory_store.get_global_usage(TODAY)
    record.question_count = 99

    assert (await memory_store.get_global_usage(TODAY)).question_count == 1


@pytest.mark.asyncio
async def test_reset_clears_everything(memory_store):
    await memory_store.put("k", "v")
    await memory_store.save_global_usage(GlobalUsageRecord(date=TODAY))
    await memory_store.set_user_plan("u", "student")

    await memory_store.reset()

    assert await memory_store.get("k") is None
    assert await memory_store.get_global_usage(TODAY) is None
    assert await memory_store.get_user_plan("u") is None
    assert await memory_store.list_global_usage(TODAY - datetime.timedelta(days=7), TODAY) == []
