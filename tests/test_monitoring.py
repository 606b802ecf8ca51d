"""
Monitoring report tests.

Tests cover daily aggregation of the ledger, today's status thresholds and
the per-identity detail.
"""

import datetime
from decimal import Decimal

import pytest

from tutor_api.models import GlobalUsageRecord, IdentityUsageRecord
from tutor_api.services.monitoring_service import MonitoringService

from tests.conftest import TODAY

YESTERDAY = TODAY - datetime.timedelta(days=1)


@pytest.fixture
def service(memory_store, today):
    return MonitoringService(memory_store, scheme="ip", today=today)


async def _seed(store, day, global_cost, questions, identities):
    await store.save_global_usage(GlobalUsageRecord(date=day, total_cost=Decimal(global_cost), question_count=questions))
    for identity, count, cost in identities:
        await store.save_identity_usage(
            "ip", IdentityUsageRecord(identity_key=identity, date=day, question_count=count, total_cost=Decimal(cost))
        )


@pytest.mark.asyncio
async def test_empty_report(service):
    report = await service.report()

    assert report["summary"]["total_questions"] == 0
    assert report["summary"]["today_status"] == "NORMAL"
    assert report["daily_breakdown"] == []
    assert report["limits"]["daily_global_limit"] == 10.0
    assert report["limits"]["daily_identity_limit"] == 0.1


@pytest.mark.asyncio
async def test_daily_breakdown_newest_first(service, memory_store):
    await _seed(memory_store, YESTERDAY, "1.00", 40, [("10.0.0.1", 4, "0.10")])
    await _seed(memory_store, TODAY, "0.05", 2, [("10.0.0.1", 1, "0.025"), ("10.0.0.2", 1, "0.025")])

    report = await service.report(days=7)
    breakdown = report["daily_breakdown"]

    assert [d["date"] for d in breakdown] == ["2024-03-15", "2024-03-14"]
    assert breakdown[0]["unique_identities"] == 2
    assert breakdown[0]["total_identity_questions"] == 2
    assert breakdown[0]["identity_details"] == []
    assert report["summary"]["total_questions"] == 42
    assert report["summary"]["total_global_cost"] == pytest.approx(1.05)
    assert report["summary"]["average_daily_cost"] == pytest.approx(0.525)
    assert report["summary"]["today_questions"] == 2
    assert report["cache_stats"]["estimated_hits"] == 12


@pytest.mark.asyncio
async def test_detailed_lists_identities(service, memory_store):
    await _seed(memory_store, TODAY, "0.025", 1, [("10.0.0.7", 1, "0.025")])

    report = await service.report(detailed=True)
    assert report["daily_breakdown"][0]["identity_details"] == [
        {"identity": "10.0.0.7", "questions": 1, "cost": 0.025}
    ]


@pytest.mark.asyncio
async def test_window_excludes_older_days(service, memory_store):
    await _seed(memory_store, TODAY - datetime.timedelta(days=10), "3.00", 100, [])

    report = await service.report(days=7)
    assert report["daily_breakdown"] == []


@pytest.mark.parametrize(
    "cost,status",
    [("7.99", "NORMAL"), ("8.00", "WARNING"), ("10.00", "LIMIT_REACHED")],
)
@pytest.mark.asyncio
async def test_today_status_thresholds(service, memory_store, cost, status):
    await _seed(memory_store, TODAY, cost, 1, [])
    report = await service.report()
    assert report["summary"]["today_status"] == status
