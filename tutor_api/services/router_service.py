"""
Router Service for orchestrating chat requests.

This module contains the RouterService class that resolves the caller's
identity, bounds the input size and runs the ordered answer strategies until
one of them produces a response.
"""

from typing import Optional

import structlog

from tutor_api.config import settings
from tutor_api.exceptions import AuthRequiredError, UpstreamUnavailableError
from tutor_api.models import ChatRequest, ChatResponse
from tutor_api.providers.base import ProviderClient
from tutor_api.routing.cache import ResponseCache
from tutor_api.routing.quota import QuotaLedger
from tutor_api.routing.strategies import (
    CacheStrategy,
    CheapModelStrategy,
    Handled,
    KeywordStrategy,
    PremiumModelStrategy,
    QuotaStrategy,
    RoutingContext,
    RoutingStrategy,
)
from tutor_api.routing.usage_meter import UsageMeter

logger = structlog.get_logger()


def truncate_message(message: str) -> str:
    """Cut the message to the configured maximum and append a truncation marker."""
    if len(message) <= settings.max_input_chars:
        return message
    return message[: settings.max_input_chars] + settings.truncation_marker


def build_strategies(
    cache: ResponseCache,
    ledger: QuotaLedger,
    meter: UsageMeter,
    cheap_provider: ProviderClient,
    premium_provider: Optional[ProviderClient] = None,
) -> list[RoutingStrategy]:
    """
    Assemble the answer strategies in evaluation order.

    The premium model is only appended when one is configured.
    """
    strategies: list[RoutingStrategy] = [
        CacheStrategy(cache),
        KeywordStrategy(cache),
        QuotaStrategy(ledger),
        CheapModelStrategy(cheap_provider, cache, meter),
    ]
    if premium_provider is not None:
        strategies.append(PremiumModelStrategy(premium_provider, cache, meter))
    return strategies


class RouterService:
    """
    Orchestrates chat requests across the answer strategies.

    For each request the service:
    1. Resolves the identity used for quota checks (IP or signed-in user)
    2. Truncates over-long messages to bound cost and payload size
    3. Evaluates the strategies in order until one returns Handled
    4. Raises UpstreamUnavailableError if every strategy falls through

    Quota denials and premium-model failures surface as exceptions raised by
    the strategies themselves and are mapped to HTTP responses by the error
    handlers.
    """

    def __init__(self, strategies: list[RoutingStrategy], identity_scheme: Optional[str] = None):
        self.strategies = strategies
        self.identity_scheme = identity_scheme or settings.identity_scheme

    def resolve_identity(self, request: ChatRequest, client_ip: str) -> str:
        if self.identity_scheme == "user":
            if not request.user_id:
                raise AuthRequiredError(settings.login_url)
            return request.user_id
        return client_ip

    async def handle_request(self, request: ChatRequest, client_ip: str) -> ChatResponse:
        """
        Answer a chat message.

        Args:
            request: The chat request body
            client_ip: Caller address, used as the identity in the IP scheme

        Returns:
            ChatResponse with provenance flags

        Raises:
            AuthRequiredError: Signed-in scheme and no user_id (401)
            QuotaExceededError: Global or identity budget exhausted (429)
            UpstreamUnavailableError: No model produced an acceptable answer (503)
        """
        identity = self.resolve_identity(request, client_ip)
        query = truncate_message(request.message)
        context = RoutingContext(identity=identity)

        log = logger.bind(message_length=len(request.message), truncated=len(query) != len(request.message))
        log.info("handling_request")

        for strategy in self.strategies:
            outcome = await strategy.attempt(query, context)
            if isinstance(outcome, Handled):
                log.info("request_handled", strategy=strategy.name)
                return outcome.response
            log.debug("strategy_fallthrough", strategy=strategy.name, reason=outcome.reason)

        unavailable = context.attempted_models[-1] if context.attempted_models else settings.cheap_provider
        logger.error("all_strategies_exhausted", model=unavailable)
        raise UpstreamUnavailableError(unavailable)
