"""
Chat pipeline tests.

Tests cover strategy ordering, cache and keyword short-circuits, quota
enforcement, the cheap-model quality gate, premium fallback and failure
handling.
"""

import time
from decimal import Decimal

import pytest

from tutor_api.config import settings
from tutor_api.exceptions import AuthRequiredError, QuotaExceededError, RateLimitError, UpstreamUnavailableError
from tutor_api.models import CacheEntry, ChatRequest, GlobalUsageRecord
from tutor_api.routing.cache import ResponseCache, cache_key
from tutor_api.routing.quota import GLOBAL_LIMIT_REACHED, IDENTITY_LIMIT_REACHED
from tutor_api.routing.strategies import passes_quality_gate
from tutor_api.services.router_service import RouterService, build_strategies, truncate_message

from tests.conftest import GOOD_ANSWER, TODAY, FakeProvider

QUESTION = "describe photosynthesis in plants"


class BrokenCache(ResponseCache):
    """Cache whose store is unreachable."""

    def __init__(self):
        super().__init__(store=None)

    async def get(self, query):
        raise ConnectionError("cache down")

    async def set(self, query, response):
        raise ConnectionError("cache down")


def test_quality_gate():
    assert passes_quality_gate(GOOD_ANSWER) is True
    assert passes_quality_gate("Too short.") is False
    assert passes_quality_gate("I don't know the answer to that question, unfortunately.") is False
    assert passes_quality_gate("Sorry, that topic is outside what I can help with today.") is False


def test_truncate_message():
    assert truncate_message("short") == "short"

    long_message = "x" * (settings.max_input_chars + 500)
    truncated = truncate_message(long_message)
    assert truncated == "x" * settings.max_input_chars + "... [message truncated for length]"


@pytest.mark.asyncio
async def test_cheap_model_answers_and_caches(router_service, cheap_provider, premium_provider, response_cache):
    response = await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")

    assert response.response == GOOD_ANSWER
    assert response.model == "cheap-fake"
    assert response.model_tier == "cheap"
    assert response.cost_saved is True
    assert response.quality == "high"
    assert len(cheap_provider.calls) == 1
    assert premium_provider.calls == []

    lookup = await response_cache.get(QUESTION)
    assert lookup.hit is True
    assert lookup.response == GOOD_ANSWER


@pytest.mark.asyncio
async def test_second_ask_is_served_from_cache(router_service, cheap_provider, memory_store):
    await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    response = await router_service.handle_request(ChatRequest(message="Describe photosynthesis in plants!"), "10.0.0.1")

    assert response.cached is True
    assert response.cost_saved is True
    assert response.response == GOOD_ANSWER
    assert len(cheap_provider.calls) == 1

    # Cache hits do not touch the ledger
    record = await memory_store.get_identity_usage("ip", "10.0.0.1", TODAY)
    assert record.question_count == 1


@pytest.mark.asyncio
async def test_weak_cheap_reply_falls_back_to_premium(router_service, cheap_provider, premium_provider):
    cheap_provider.reply = "I don't know much about that subject, try asking a teacher."

    response = await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")

    assert response.model == "premium-fake"
    assert response.model_tier == "premium"
    assert response.cost_saved is False
    assert len(cheap_provider.calls) == 1
    assert len(premium_provider.calls) == 1


@pytest.mark.asyncio
async def test_cheap_rate_limit_falls_back_to_premium(router_service, cheap_provider):
    cheap_provider.error = RateLimitError("rate limited", provider_name="cheap-fake")

    response = await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert response.model_tier == "premium"


@pytest.mark.asyncio
async def test_premium_failure_is_upstream_unavailable(router_service, cheap_provider, premium_provider):
    cheap_provider.error = RuntimeError("boom")
    premium_provider.error = RuntimeError("also boom")

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert exc_info.value.model_name == "premium-fake"


@pytest.mark.asyncio
async def test_without_premium_cheap_failure_names_cheap_model(response_cache, quota_ledger, usage_meter):
    cheap = FakeProvider("cheap-fake", error=RuntimeError("boom"))
    service = RouterService(build_strategies(response_cache, quota_ledger, usage_meter, cheap), identity_scheme="ip")

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert exc_info.value.model_name == "cheap-fake"


@pytest.mark.asyncio
async def test_keyword_answer_skips_quota_and_models(router_service, cheap_provider, memory_store, response_cache):
    response = await router_service.handle_request(ChatRequest(message="what is 2+2"), "10.0.0.1")

    assert response.response == "2 + 2 = 4"
    assert response.keyword_match is True
    assert response.type == "simple_math"
    assert response.cost_saved is True
    assert cheap_provider.calls == []
    assert await memory_store.get_global_usage(TODAY) is None

    assert (await response_cache.get("what is 2+2")).hit is False


@pytest.mark.asyncio
async def test_arithmetic_answers_do_not_collide_in_cache(router_service, response_cache):
    await router_service.handle_request(ChatRequest(message="what is 2+2"), "10.0.0.1")
    response = await router_service.handle_request(ChatRequest(message="what is 2*2"), "10.0.0.1")

    assert response.response == "2 × 2 = 4"
    assert response.cached is not True


@pytest.mark.asyncio
async def test_faq_answer_is_cached(router_service, response_cache):
    response = await router_service.handle_request(ChatRequest(message="What is algebra?"), "10.0.0.1")

    assert response.type == "exact_keyword"
    assert (await response_cache.get("what is algebra")).response == response.response


@pytest.mark.asyncio
async def test_fifth_question_from_one_ip_is_denied(router_service, cheap_provider):
    questions = [
        "describe photosynthesis in plants",
        "what causes ocean tides",
        "name the planets in order",
        "why is the sky blue",
    ]
    for question in questions:
        await router_service.handle_request(ChatRequest(message=question), "10.0.0.9")

    with pytest.raises(QuotaExceededError) as exc_info:
        await router_service.handle_request(ChatRequest(message="what is a prime number"), "10.0.0.9")

    assert exc_info.value.reason == IDENTITY_LIMIT_REACHED
    assert exc_info.value.metadata == {"limit": 4, "remaining": 0}
    assert len(cheap_provider.calls) == 4


@pytest.mark.asyncio
async def test_global_limit_checked_before_identity(router_service, cheap_provider, memory_store):
    await memory_store.save_global_usage(GlobalUsageRecord(date=TODAY, total_cost=Decimal("10.00"), question_count=400))

    with pytest.raises(QuotaExceededError) as exc_info:
        await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")

    assert exc_info.value.reason == GLOBAL_LIMIT_REACHED
    assert exc_info.value.metadata["global_limit"] is True
    assert cheap_provider.calls == []
    assert await memory_store.get_identity_usage("ip", "10.0.0.1", TODAY) is None


@pytest.mark.asyncio
async def test_cache_failure_is_treated_as_miss(quota_ledger, usage_meter, cheap_provider):
    service = RouterService(
        build_strategies(BrokenCache(), quota_ledger, usage_meter, cheap_provider),
        identity_scheme="ip",
    )

    response = await service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert response.response == GOOD_ANSWER

    keyword_response = await service.handle_request(ChatRequest(message="what is 3 * 4"), "10.0.0.1")
    assert keyword_response.response == "3 × 4 = 12"


@pytest.mark.asyncio
async def test_dissimilar_cache_hit_is_ignored(router_service, response_cache, cheap_provider):
    # Entry stored under this query's key but for different wording
    entry = CacheEntry(
        key=cache_key(QUESTION),
        original_query="something else entirely",
        normalized_query="something else entirely",
        response="unrelated answer",
        created_at=time.time(),
    )
    await response_cache.store.put_json(entry.key, entry.model_dump())

    response = await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert response.response == GOOD_ANSWER
    assert len(cheap_provider.calls) == 1


@pytest.mark.asyncio
async def test_usage_is_metered_for_the_model_call(router_service, memory_store):
    await router_service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")

    daily = await memory_store.get_json("workers-ai-usage-2024-03-15")
    assert daily["total_requests"] == 1
    assert daily["models"]["cheap-fake"]["input_tokens"] == 9


@pytest.mark.asyncio
async def test_truncated_message_reaches_the_model(router_service, cheap_provider):
    message = "tell me about ocean tides " * 200
    await router_service.handle_request(ChatRequest(message=message), "10.0.0.1")

    prompt = cheap_provider.calls[0]
    assert len(prompt) == settings.max_input_chars + len(settings.truncation_marker)
    assert prompt.endswith(settings.truncation_marker)


@pytest.mark.asyncio
async def test_user_scheme_requires_user_id(router_service):
    service = RouterService(router_service.strategies, identity_scheme="user")

    with pytest.raises(AuthRequiredError) as exc_info:
        await service.handle_request(ChatRequest(message=QUESTION), "10.0.0.1")
    assert exc_info.value.login_url == settings.login_url
