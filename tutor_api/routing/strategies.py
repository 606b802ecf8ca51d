"""
Answer strategies for the chat pipeline.

Each strategy exposes ``attempt(query, context)`` and returns either
``Handled`` (a response for the user) or ``Fallthrough`` (let the next
strategy try). The router evaluates them in a fixed order:

    cache -> keyword -> quota -> cheap model -> premium model

Strategies that only save money (cache, keyword) swallow their collaborators'
errors and fall through. The quota strategy and the premium model raise,
because those are the only steps allowed to end a request with an error.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, Union

import structlog

from tutor_api.config import settings
from tutor_api.exceptions import QuotaExceededError, RateLimitError, UpstreamUnavailableError
from tutor_api.models import ChatResponse, ModelReply
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.cache import ResponseCache
from tutor_api.routing.keywords import Deterministic, classify
from tutor_api.routing.quota import QuotaLedger
from tutor_api.routing.usage_meter import UsageMeter

logger = structlog.get_logger()


@dataclass
class RoutingContext:
    """Per-request state shared by the strategies."""

    identity: str
    attempted_models: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Handled:
    response: ChatResponse


@dataclass(frozen=True)
class Fallthrough:
    reason: str


Outcome = Union[Handled, Fallthrough]


async def best_effort(awaitable: Awaitable[Any], event: str, **log_context) -> Optional[Any]:
    """
    Await a non-essential collaborator call once, bounded by the collaborator timeout.

    Returns None on failure or timeout after logging ``event``.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.collaborator_timeout_s)
    except Exception as e:
        logger.warning(event, error=str(e) or type(e).__name__, **log_context)
        return None


def passes_quality_gate(text: str) -> bool:
    """Reject short replies and replies containing a refusal phrase."""
    if len(text) < settings.min_response_chars:
        return False
    return not any(phrase in text for phrase in settings.refusal_phrases)


class RoutingStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        pass


class CacheStrategy(RoutingStrategy):
    """Answer from a fresh, similar enough cached response."""

    name = "cache"

    def __init__(self, cache: ResponseCache):
        self.cache = cache

    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        lookup = await best_effort(self.cache.get(query), "cache_check_failed")
        if lookup is None or not lookup.hit:
            return Fallthrough("cache_miss")

        if lookup.similarity < settings.cache_similarity_threshold:
            logger.info("cache_hit_rejected", similarity=lookup.similarity)
            return Fallthrough("cache_dissimilar")

        await best_effort(self.cache.increment(query), "cache_increment_failed")

        logger.info("cache_hit", similarity=lookup.similarity, age_ms=lookup.age_ms)
        return Handled(ChatResponse(response=lookup.response, cached=True, cost_saved=True))


class KeywordStrategy(RoutingStrategy):
    """Answer arithmetic, FAQ and courtesy queries without a model."""

    name = "keyword"

    def __init__(self, cache: ResponseCache):
        self.cache = cache

    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        try:
            match = classify(query)
        except Exception as e:
            logger.warning("keyword_check_failed", error=str(e))
            return Fallthrough("keyword_unavailable")

        if not isinstance(match, Deterministic):
            return Fallthrough(match.reason)

        # Cache keys drop operators, so "2+2" and "2*2" share a key; sums are cheap to recompute
        if match.match_type != "simple_math":
            await best_effort(self.cache.set(query, match.response), "cache_set_failed", source=self.name)

        logger.info("keyword_match", match_type=match.match_type)
        return Handled(
            ChatResponse(
                response=match.response,
                keyword_match=True,
                type=match.match_type,
                cost_saved=True,
            )
        )


class QuotaStrategy(RoutingStrategy):
    """
    Enforce the global budget, then the identity budget.

    Never answers: either raises QuotaExceededError or falls through.
    """

    name = "quota"

    def __init__(self, ledger: QuotaLedger):
        self.ledger = ledger

    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        global_decision = await self.ledger.check_and_reserve_global()
        if not global_decision.allowed:
            raise QuotaExceededError(
                global_decision.message,
                reason=global_decision.reason,
                metadata={
                    "global_limit": True,
                    "limit": float(global_decision.global_limit),
                    "current_global_cost": float(global_decision.current_global_cost),
                },
            )

        identity_decision = await self.ledger.check_and_reserve_identity(context.identity)
        if not identity_decision.allowed:
            if identity_decision.plan:
                message = (
                    f"You've reached your {identity_decision.plan} plan limit of "
                    f"{identity_decision.limit} questions today. Come back tomorrow!"
                )
            else:
                message = "You've used today's free question budget. Come back tomorrow for more questions!"
            metadata = {"limit": identity_decision.limit, "remaining": 0}
            if identity_decision.plan:
                metadata["plan"] = identity_decision.plan
            raise QuotaExceededError(message, reason=identity_decision.reason, metadata=metadata)

        logger.info("quota_allowed", remaining=identity_decision.remaining, limit=identity_decision.limit)
        return Fallthrough("quota_ok")


class _ModelStrategy(RoutingStrategy):
    tier: str = "cheap"

    def __init__(self, provider: ProviderClient, cache: ResponseCache, meter: UsageMeter):
        self.provider = provider
        self.cache = cache
        self.meter = meter

    async def _call(self, query: str, context: RoutingContext) -> ModelReply:
        context.attempted_models.append(self.provider.name)
        logger.info("calling_provider", provider=self.provider.name, tier=self.tier)
        return await self.provider.chat(query, settings.model_timeout_ms)

    async def _accept(self, query: str, reply: ModelReply) -> None:
        await best_effort(self.cache.set(query, reply.content), "cache_set_failed", source=self.name)
        await best_effort(
            self.meter.record(reply.provider_used, reply.input_tokens, reply.output_tokens),
            "usage_record_failed",
        )
        logger.info("provider_success", provider=reply.provider_used, tier=self.tier, latency_ms=reply.latency_ms)


class CheapModelStrategy(_ModelStrategy):
    """Try the low-cost model; fall through on failure or a weak reply."""

    name = "cheap_model"
    tier = "cheap"

    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        try:
            reply = await self._call(query, context)
        except RateLimitError as e:
            logger.warning("cheap_model_rate_limited", provider=self.provider.name, error=str(e))
            return Fallthrough("cheap_model_rate_limited")
        except Exception as e:
            logger.error("cheap_model_failed", provider=self.provider.name, error=str(e))
            return Fallthrough("cheap_model_failed")

        if not passes_quality_gate(reply.content):
            logger.info("cheap_model_rejected", provider=self.provider.name, length=len(reply.content))
            return Fallthrough("cheap_model_rejected")

        await self._accept(query, reply)
        return Handled(
            ChatResponse(
                response=reply.content,
                model=reply.provider_used,
                model_tier="cheap",
                cost_saved=True,
                quality="high",
            )
        )


class PremiumModelStrategy(_ModelStrategy):
    """Last resort: the premium model. Failure ends the request with 503."""

    name = "premium_model"
    tier = "premium"

    async def attempt(self, query: str, context: RoutingContext) -> Outcome:
        try:
            reply = await self._call(query, context)
        except Exception as e:
            logger.error("premium_model_failed", provider=self.provider.name, error=str(e))
            raise UpstreamUnavailableError(self.provider.name)

        await self._accept(query, reply)
        return Handled(
            ChatResponse(
                response=reply.content,
                model=reply.provider_used,
                model_tier="premium",
                cost_saved=False,
            )
        )
