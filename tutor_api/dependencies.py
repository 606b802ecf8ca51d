"""
Centralized dependency injection for FastAPI.

This module provides singleton instances of the storage collaborators and
core services using FastAPI's dependency injection system with @lru_cache()
for singleton management.

All dependencies can be overridden in tests using app.dependency_overrides.
"""

from functools import lru_cache

from tutor_api.config import settings
from tutor_api.exceptions import StorageNotConfiguredError
from tutor_api.providers.factory import get_cheap_provider, get_premium_provider
from tutor_api.routing.cache import ResponseCache
from tutor_api.routing.quota import QuotaLedger
from tutor_api.routing.usage_meter import UsageMeter
from tutor_api.services.conversation_service import ConversationService
from tutor_api.services.monitoring_service import MonitoringService
from tutor_api.services.router_service import RouterService, build_strategies
from tutor_api.storage.base import KeyValueStore, UsageStore
from tutor_api.storage.memory import MemoryStore
from tutor_api.storage.redis_store import RedisKeyValueStore
from tutor_api.storage.sql import SqlUsageStore


@lru_cache()
def get_kv_store() -> KeyValueStore:
    """
    Get the singleton key-value store.

    Any backend other than ``memory`` keeps documents in Redis.

    Raises:
        StorageNotConfiguredError: Redis backend selected without ``redis_url``
    """
    if settings.storage_backend == "memory":
        return MemoryStore()
    if not settings.redis_url:
        raise StorageNotConfiguredError("Cache")
    return RedisKeyValueStore.from_url(settings.redis_url)


@lru_cache()
def get_usage_store() -> UsageStore:
    """
    Get the singleton usage table store.

    Only the ``sql`` backend moves the ledger into a database.

    Raises:
        StorageNotConfiguredError: SQL backend selected without ``database_url``
    """
    if settings.storage_backend != "sql":
        return MemoryStore()
    if not settings.database_url:
        raise StorageNotConfiguredError("Database")
    return SqlUsageStore.from_url(settings.database_url)


@lru_cache()
def get_response_cache() -> ResponseCache:
    return ResponseCache(get_kv_store())


@lru_cache()
def get_quota_ledger() -> QuotaLedger:
    return QuotaLedger(get_usage_store())


@lru_cache()
def get_usage_meter() -> UsageMeter:
    return UsageMeter(get_kv_store())


@lru_cache()
def get_conversation_service() -> ConversationService:
    return ConversationService(get_kv_store())


@lru_cache()
def get_monitoring_service() -> MonitoringService:
    return MonitoringService(get_usage_store())


@lru_cache()
def get_router_service() -> RouterService:
    """
    Get singleton RouterService instance.

    Returns:
        RouterService: Chat pipeline with the configured cheap and premium models
    """
    strategies = build_strategies(
        get_response_cache(),
        get_quota_ledger(),
        get_usage_meter(),
        get_cheap_provider(),
        get_premium_provider(),
    )
    return RouterService(strategies)
