"""
In-process storage backend for local runs and tests.

This module implements a singleton memory store standing in for the external
key-value store and usage tables. It satisfies both storage interfaces so the
routing core can run without Redis or a database.

Thread Safety:
    All operations use an asyncio.Lock so concurrent handlers see consistent
    documents. The lock only guards single operations; read-modify-write
    sequences built on top (quota commits, cache increments) remain
    last-write-wins exactly as they would against a remote store.

Singleton Pattern:
    Multiple instantiations return the same instance, so every dependency
    resolved in one process shares the same state.
"""

import asyncio
import datetime
import time
from typing import Optional

from tutor_api.models import GlobalUsageRecord, IdentityUsageRecord
from tutor_api.storage.base import KeyValueStore, UsageStore


class MemoryStore(KeyValueStore, UsageStore):
    """
    Singleton store for key-value documents and daily usage records.

    State Categories:
        - Documents: JSON strings with optional expiry timestamps
        - Global usage: one record per day
        - Identity usage: one record per (scheme, identity, day)
        - User plans: subscription plan per user id
    """

    _instance: Optional["MemoryStore"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._lock = asyncio.Lock()

        self._documents: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}

        self._global_usage: dict[datetime.date, GlobalUsageRecord] = {}
        self._identity_usage: dict[tuple[str, str, datetime.date], IdentityUsageRecord] = {}
        self._user_plans: dict[str, str] = {}

        self._initialized = True

    async def reset(self) -> None:
        """
        Reset all state to empty.

        Primarily used by tests to get an isolated store.
        """
        async with self._lock:
            self._documents.clear()
            self._expires_at.clear()
            self._global_usage.clear()
            self._identity_usage.clear()
            self._user_plans.clear()

    def _evict_if_expired(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and time.time() >= expires_at:
            self._documents.pop(key, None)
            self._expires_at.pop(key, None)

    # Key-value documents

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            self._evict_if_expired(key)
            return self._documents.get(key)

    async def put(self, key: str, value: str, ttl_s: Optional[int] = None) -> None:
        async with self._lock:
            self._documents[key] = value
            if ttl_s:
                self._expires_at[key] = time.time() + ttl_s
            else:
                self._expires_at.pop(key, None)

    async def list_keys(self, prefix: str) -> list[str]:
        async with self._lock:
            for key in list(self._documents):
                self._evict_if_expired(key)
            return sorted(key for key in self._documents if key.startswith(prefix))

    # Usage tables

    async def get_global_usage(self, day: datetime.date) -> Optional[GlobalUsageRecord]:
        async with self._lock:
            record = self._global_usage.get(day)
            return record.model_copy() if record else None

    async def save_global_usage(self, record: GlobalUsageRecord) -> None:
        async with self._lock:
            self._global_usage[record.date] = record.model_copy()

    async def get_identity_usage(
        self, scheme: str, identity_key: str, day: datetime.date
    ) -> Optional[IdentityUsageRecord]:
        async with self._lock:
            record = self._identity_usage.get((scheme, identity_key, day))
            return record.model_copy() if record else None

    async def save_identity_usage(self, scheme: str, record: IdentityUsageRecord) -> None:
        async with self._lock:
            self._identity_usage[(scheme, record.identity_key, record.date)] = record.model_copy()

    async def list_global_usage(self, start: datetime.date, end: datetime.date) -> list[GlobalUsageRecord]:
        async with self._lock:
            records = [r.model_copy() for day, r in self._global_usage.items() if start <= day <= end]
        return sorted(records, key=lambda r: r.date, reverse=True)

    async def list_identity_usage(
        self, scheme: str, start: datetime.date, end: datetime.date
    ) -> list[IdentityUsageRecord]:
        async with self._lock:
            records = [
                r.model_copy()
                for (record_scheme, _, day), r in self._identity_usage.items()
                if record_scheme == scheme and start <= day <= end
            ]
        return sorted(records, key=lambda r: r.date, reverse=True)

    async def get_user_plan(self, user_id: str) -> Optional[str]:
        async with self._lock:
            return self._user_plans.get(user_id)

    async def set_user_plan(self, user_id: str, plan: str) -> None:
        async with self._lock:
            self._user_plans[user_id] = plan
