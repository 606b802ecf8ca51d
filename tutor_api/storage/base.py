"""
Storage collaborator interfaces.

The routing core only needs two narrow contracts: a key-value store holding
JSON documents (cache entries, usage counters, conversations) and a usage
ledger with upsert-by-composite-key semantics (global, per-IP and per-user
daily records plus user plans). Backends live next to this module.
"""

import datetime
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from tutor_api.models import GlobalUsageRecord, IdentityUsageRecord


class KeyValueStore(ABC):
    """String-keyed document store with optional per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def put(self, key: str, value: str, ttl_s: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def list_keys(self, prefix: str) -> list[str]:
        pass

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def put_json(self, key: str, value: Any, ttl_s: Optional[int] = None) -> None:
        await self.put(key, json.dumps(value), ttl_s=ttl_s)

    async def ping(self) -> bool:
        return True


class UsageStore(ABC):
    """Daily usage tables keyed by date and identity."""

    @abstractmethod
    async def get_global_usage(self, day: datetime.date) -> Optional[GlobalUsageRecord]:
        pass

    @abstractmethod
    async def save_global_usage(self, record: GlobalUsageRecord) -> None:
        pass

    @abstractmethod
    async def get_identity_usage(
        self, scheme: str, identity_key: str, day: datetime.date
    ) -> Optional[IdentityUsageRecord]:
        pass

    @abstractmethod
    async def save_identity_usage(self, scheme: str, record: IdentityUsageRecord) -> None:
        pass

    @abstractmethod
    async def list_global_usage(self, start: datetime.date, end: datetime.date) -> list[GlobalUsageRecord]:
        """Records with ``start <= date <= end``, newest first."""

    @abstractmethod
    async def list_identity_usage(
        self, scheme: str, start: datetime.date, end: datetime.date
    ) -> list[IdentityUsageRecord]:
        """Records with ``start <= date <= end``, newest first."""

    @abstractmethod
    async def get_user_plan(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_user_plan(self, user_id: str, plan: str) -> None:
        pass

    async def ping(self) -> bool:
        return True
