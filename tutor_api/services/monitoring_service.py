"""
Daily usage monitoring over the quota ledger tables.
"""

import datetime
from typing import Callable

from tutor_api.config import settings
from tutor_api.routing.quota import utc_today
from tutor_api.storage.base import UsageStore

# Share of questions assumed to be served from cache when estimating savings
ESTIMATED_CACHE_HIT_RATE = 0.3


def _empty_day(day: str) -> dict:
    return {
        "date": day,
        "global_cost": 0.0,
        "global_questions": 0,
        "unique_identities": 0,
        "total_identity_questions": 0,
        "total_identity_costs": 0.0,
        "identity_details": [],
    }


class MonitoringService:
    """
    Aggregates global and per-identity usage records into a report.

    Attributes:
        store: Usage table collaborator
        scheme: Identity scheme whose records are aggregated
        today: Returns the current calendar day
    """

    def __init__(self, store: UsageStore, scheme: str = None, today: Callable[[], datetime.date] = utc_today):
        self.store = store
        self.scheme = scheme or settings.identity_scheme
        self.today = today

    def status_for(self, cost: float) -> str:
        limit = float(settings.daily_global_limit)
        if cost >= limit:
            return "LIMIT_REACHED"
        if cost >= limit * settings.global_warning_ratio:
            return "WARNING"
        return "NORMAL"

    async def report(self, days: int = 7, detailed: bool = False) -> dict:
        """
        Build the usage report for the last ``days`` days, today included.

        Args:
            days: Size of the trailing window
            detailed: Include a per-identity breakdown for every day
        """
        today = self.today()
        start = today - datetime.timedelta(days=days)

        global_rows = await self.store.list_global_usage(start, today)
        identity_rows = await self.store.list_identity_usage(self.scheme, start, today)

        daily: dict[str, dict] = {}
        for row in global_rows:
            stats = daily.setdefault(row.date.isoformat(), _empty_day(row.date.isoformat()))
            stats["global_cost"] = float(row.total_cost)
            stats["global_questions"] = row.question_count

        for row in identity_rows:
            stats = daily.setdefault(row.date.isoformat(), _empty_day(row.date.isoformat()))
            stats["unique_identities"] += 1
            stats["total_identity_questions"] += row.question_count
            stats["total_identity_costs"] += float(row.total_cost)
            if detailed:
                stats["identity_details"].append(
                    {"identity": row.identity_key, "questions": row.question_count, "cost": float(row.total_cost)}
                )

        breakdown = sorted(daily.values(), key=lambda d: d["date"], reverse=True)

        total_cost = sum(d["global_cost"] for d in breakdown)
        total_questions = sum(d["global_questions"] for d in breakdown)
        total_identities = sum(d["unique_identities"] for d in breakdown)
        average_cost = total_cost / len(breakdown) if breakdown else 0.0
        today_stats = daily.get(today.isoformat(), _empty_day(today.isoformat()))

        estimated_hits = int(total_questions * ESTIMATED_CACHE_HIT_RATE)

        return {
            "summary": {
                "period_days": days,
                "identity_scheme": self.scheme,
                "total_global_cost": round(total_cost, 4),
                "total_questions": total_questions,
                "total_unique_identities": total_identities,
                "average_daily_cost": round(average_cost, 4),
                "today_status": self.status_for(today_stats["global_cost"]),
                "today_cost": round(today_stats["global_cost"], 4),
                "today_questions": today_stats["global_questions"],
                "today_unique_identities": today_stats["unique_identities"],
            },
            "daily_breakdown": breakdown,
            "cache_stats": {
                "estimated_hits": estimated_hits,
                "estimated_savings": round(estimated_hits * float(settings.question_cost_estimate), 4),
                "note": "Cache statistics are estimated",
            },
            "limits": {
                "daily_global_limit": float(settings.daily_global_limit),
                "daily_identity_limit": float(settings.daily_identity_budget),
                "warning_threshold": float(settings.daily_global_limit) * settings.global_warning_ratio,
            },
        }
