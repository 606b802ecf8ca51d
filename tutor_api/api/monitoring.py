"""
Usage monitoring endpoint routes.
"""

from fastapi import APIRouter, Depends, Query

from tutor_api.dependencies import get_monitoring_service, get_usage_meter
from tutor_api.routing.usage_meter import UsageMeter
from tutor_api.services.monitoring_service import MonitoringService

router = APIRouter(
    tags=["monitoring"],
)


@router.get(
    "/monitoring",
    summary="Daily usage report",
    description="""
    Aggregate the quota ledger over a trailing window.

    **Report sections:**
    - `summary`: totals, daily average and today's status
      (`NORMAL`, `WARNING` at 80% or `LIMIT_REACHED` at 100% of the global limit)
    - `daily_breakdown`: one row per day, newest first; per-identity detail when `detailed=true`
    - `cache_stats`: estimated cache savings
    - `limits`: configured budgets
    """,
)
async def monitoring(
    days: int = Query(default=7, ge=1, le=90),
    detailed: bool = False,
    service: MonitoringService = Depends(get_monitoring_service),
) -> dict:
    return await service.report(days=days, detailed=detailed)


@router.api_route(
    "/workers-ai-usage",
    methods=["GET", "POST"],
    summary="Model usage and cost report",
    description="""
    Token counts and estimated model spend for today, this month and the
    last `days` days, compared against the daily and monthly ceilings.
    Read-only.
    """,
)
async def workers_ai_usage(
    days: int = Query(default=1, ge=1, le=31),
    meter: UsageMeter = Depends(get_usage_meter),
) -> dict:
    return await meter.report(days=days)
