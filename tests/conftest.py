"""Shared test fixtures for all tests."""

import datetime
from typing import Optional

import pytest

from tutor_api.config import ProviderSpec
from tutor_api.models import ModelReply
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.cache import ResponseCache
from tutor_api.routing.quota import QuotaLedger
from tutor_api.routing.usage_meter import UsageMeter, estimate_tokens
from tutor_api.services.router_service import RouterService, build_strategies
from tutor_api.storage.memory import MemoryStore

TODAY = datetime.date(2024, 3, 15)

GOOD_ANSWER = "Photosynthesis turns light energy into chemical energy stored in glucose."


class FakeProvider(ProviderClient):
    """
    Scriptable provider for tests.

    Returns ``reply`` on every call, or raises ``error`` when one is set.
    Every prompt it receives is kept in ``calls``.
    """

    def __init__(self, name: str, tier: str = "cheap", reply: str = GOOD_ANSWER, error: Optional[Exception] = None):
        super().__init__(
            ProviderSpec(
                name=name,
                tier=tier,
                model=f"{name}-model",
                input_cost_per_m_tokens=1.0,
                output_cost_per_m_tokens=2.0,
            )
        )
        self.reply = reply
        self.error = error
        self.calls: list[str] = []

    async def chat(self, prompt: str, timeout_ms: int) -> ModelReply:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        return ModelReply(
            provider_used=self.name,
            model=self.spec.model,
            content=self.reply,
            latency_ms=1,
            input_tokens=estimate_tokens(prompt),
            output_tokens=estimate_tokens(self.reply),
        )


@pytest.fixture
async def memory_store():
    """
    Create a fresh MemoryStore instance for testing.

    This fixture provides an isolated memory store for each test,
    ensuring test independence.
    """
    store = MemoryStore()
    await store.reset()
    return store


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def response_cache(memory_store):
    return ResponseCache(memory_store)


@pytest.fixture
def quota_ledger(memory_store, today):
    return QuotaLedger(memory_store, scheme="ip", today=today)


@pytest.fixture
def usage_meter(memory_store, today):
    return UsageMeter(memory_store, today=today)


@pytest.fixture
def cheap_provider():
    return FakeProvider("cheap-fake", tier="cheap")


@pytest.fixture
def premium_provider():
    return FakeProvider("premium-fake", tier="premium", reply="Premium explanation of the topic in plenty of detail.")


@pytest.fixture
def router_service(response_cache, quota_ledger, usage_meter, cheap_provider, premium_provider):
    """
    Create a RouterService wired to the memory store and fake providers.

    Args:
        response_cache: The cache fixture (injected by pytest)
        quota_ledger: The ledger fixture (injected by pytest)
        usage_meter: The meter fixture (injected by pytest)
        cheap_provider: Fake low-cost model
        premium_provider: Fake premium model
    """
    strategies = build_strategies(response_cache, quota_ledger, usage_meter, cheap_provider, premium_provider)
    return RouterService(strategies, identity_scheme="ip")
