"""
Token usage and cost metering for model calls.

This module accumulates request and token counters per calendar day and month
in the key-value store and turns them into cost estimates for monitoring.
Token counts are a fixed-ratio approximation (characters / 4).
"""

import asyncio
import datetime
import math
from typing import Callable

import structlog

from tutor_api.config import ProviderRegistry, ProviderSpec, settings
from tutor_api.models import ModelTokenCounts, UsageCounters
from tutor_api.routing.quota import utc_today
from tutor_api.storage.base import KeyValueStore

logger = structlog.get_logger()

USAGE_KEY_PREFIX = "workers-ai-usage-"
DAILY_RETENTION_S = 2 * 24 * 60 * 60
MONTHLY_RETENTION_S = 32 * 24 * 60 * 60


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def estimate_cost(provider: ProviderSpec, input_tokens: int, output_tokens: int) -> float:
    return (
        input_tokens / 1_000_000 * provider.input_cost_per_m_tokens
        + output_tokens / 1_000_000 * provider.output_cost_per_m_tokens
    )


def _next_month(day: datetime.date) -> datetime.date:
    if day.month == 12:
        return datetime.date(day.year + 1, 1, 1)
    return datetime.date(day.year, day.month + 1, 1)


class UsageMeter:
    """
    Service for recording and reporting model usage.

    Attributes:
        store: Key-value collaborator holding the counters
        today: Returns the current calendar day
    """

    def __init__(self, store: KeyValueStore, today: Callable[[], datetime.date] = utc_today):
        self.store = store
        self.today = today

    @staticmethod
    def daily_key(day: datetime.date) -> str:
        return f"{USAGE_KEY_PREFIX}{day.isoformat()}"

    @staticmethod
    def monthly_key(day: datetime.date) -> str:
        return f"{USAGE_KEY_PREFIX}{day.isoformat()[:7]}"

    async def _load(self, key: str) -> UsageCounters:
        data = await self.store.get_json(key)
        if data is None:
            return UsageCounters(period_key=key[len(USAGE_KEY_PREFIX):])
        return UsageCounters.model_validate(data)

    async def record(self, model_name: str, input_tokens: int, output_tokens: int) -> None:
        """
        Add one model call to today's and this month's counters.

        Best-effort: storage failures are logged and swallowed so metering can
        never fail a chat request.

        Args:
            model_name: Provider name from providers.yaml
            input_tokens: Estimated prompt tokens
            output_tokens: Estimated completion tokens
        """
        try:
            day = self.today()
            for key, ttl_s in (
                (self.daily_key(day), DAILY_RETENTION_S),
                (self.monthly_key(day), MONTHLY_RETENTION_S),
            ):
                counters = await self._load(key)
                counters.total_requests += 1
                counters.total_input_tokens += input_tokens
                counters.total_output_tokens += output_tokens
                counters.model_requests += 1
                per_model = counters.models.setdefault(model_name, ModelTokenCounts())
                per_model.requests += 1
                per_model.input_tokens += input_tokens
                per_model.output_tokens += output_tokens
                await self.store.put_json(key, counters.model_dump(), ttl_s=ttl_s)
        except Exception as e:
            logger.warning("usage_record_failed", model=model_name, error=str(e))

    @staticmethod
    def _cost(counters: UsageCounters, providers: dict[str, ProviderSpec]) -> float:
        total = 0.0
        for name, counts in counters.models.items():
            spec = providers.get(name)
            if spec is None:
                continue
            total += estimate_cost(spec, counts.input_tokens, counts.output_tokens)
        return total

    @staticmethod
    def _period_report(counters: UsageCounters, cost: float, limit: float) -> dict:
        percentage = cost / limit * 100 if limit > 0 else 0.0
        return {
            "requests": counters.total_requests,
            "input_tokens": counters.total_input_tokens,
            "output_tokens": counters.total_output_tokens,
            "model_requests": counters.model_requests,
            "estimated_cost": cost,
            "limit": limit,
            "percentage_used": percentage,
            "warning": cost >= limit * settings.usage_warning_ratio,
            "limit_reached": cost >= limit,
        }

    async def report(self, days: int = 1) -> dict:
        """
        Read-only cost report for today, this month and a trailing window.

        Args:
            days: Number of calendar days, ending today, in the window breakdown

        Returns:
            dict with ``daily``, ``monthly``, ``window``, ``pricing`` and
            ``alerts`` sections. Warning and limit flags compare estimated cost
            against the configured daily and monthly ceilings.
        """
        days = max(1, days)
        today = self.today()
        providers = ProviderRegistry.providers_dict()

        window_days = [today - datetime.timedelta(days=offset) for offset in range(days)]
        window_counters = await asyncio.gather(*[self._load(self.daily_key(day)) for day in window_days])
        monthly = await self._load(self.monthly_key(today))
        daily = window_counters[0]

        daily_cost = self._cost(daily, providers)
        monthly_cost = self._cost(monthly, providers)

        daily_report = {"date": today.isoformat(), **self._period_report(daily, daily_cost, settings.usage_daily_cost_limit)}
        monthly_report = {
            "month": today.isoformat()[:7],
            **self._period_report(monthly, monthly_cost, settings.usage_monthly_cost_limit),
        }

        breakdown = [
            {
                "date": day.isoformat(),
                "requests": counters.total_requests,
                "input_tokens": counters.total_input_tokens,
                "output_tokens": counters.total_output_tokens,
                "estimated_cost": self._cost(counters, providers),
            }
            for day, counters in zip(window_days, window_counters)
        ]

        return {
            "daily": daily_report,
            "monthly": monthly_report,
            "window": {
                "days": days,
                "requests": sum(row["requests"] for row in breakdown),
                "input_tokens": sum(row["input_tokens"] for row in breakdown),
                "output_tokens": sum(row["output_tokens"] for row in breakdown),
                "estimated_cost": sum(row["estimated_cost"] for row in breakdown),
                "breakdown": breakdown,
            },
            "pricing": {
                name: {
                    "model": spec.model,
                    "tier": spec.tier,
                    "input_cost_per_m_tokens": spec.input_cost_per_m_tokens,
                    "output_cost_per_m_tokens": spec.output_cost_per_m_tokens,
                }
                for name, spec in providers.items()
            },
            "alerts": {
                "daily_warning": daily_report["warning"],
                "monthly_warning": monthly_report["warning"],
                "daily_limit_reached": daily_report["limit_reached"],
                "monthly_limit_reached": monthly_report["limit_reached"],
                "next_reset": {
                    "daily": f"Tomorrow ({(today + datetime.timedelta(days=1)).isoformat()})",
                    "monthly": f"Next month ({_next_month(today).isoformat()})",
                },
            },
        }
