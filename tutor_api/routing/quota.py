"""
Daily quota ledger.

Two nested budgets guard model spend:

    global   - platform-wide daily cost cap, checked first
    identity - per-IP daily cost cap (anonymous deployments) or per-user
               daily question count from the user's plan (signed-in deployments)

Each check reads today's record, compares against the threshold and, when
allowed, commits the increment straight away. The read and the write are two
separate storage calls, so concurrent requests from one identity may overshoot
a cap by the number of requests racing inside that window. That looseness is
accepted for a low-stakes budget; there is no reservation/release protocol.

A new day is just a missing record, which reads as zero usage.
"""

import datetime
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Callable, Optional

import structlog

from tutor_api.config import settings
from tutor_api.models import GlobalUsageRecord, IdentityUsageRecord
from tutor_api.storage.base import UsageStore

logger = structlog.get_logger()

GLOBAL_LIMIT_REACHED = "global_limit_reached"
IDENTITY_LIMIT_REACHED = "identity_limit_reached"
RESET_TIME = "tomorrow"


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.025 as 0.025 instead of its binary float expansion
    return Decimal(str(value))


def _plain(value):
    return float(value) if isinstance(value, Decimal) else value


@dataclass(frozen=True)
class GlobalDecision:
    allowed: bool
    current_global_cost: Decimal
    global_limit: Decimal
    questions_served_today: int
    remaining_global_budget: Optional[Decimal] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    def as_dict(self) -> dict:
        return {k: _plain(v) for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class IdentityDecision:
    allowed: bool
    remaining: Optional[int]
    limit: Optional[int]
    current_cost: Optional[Decimal] = None
    remaining_budget: Optional[Decimal] = None
    daily_budget: Optional[Decimal] = None
    plan: Optional[str] = None
    reason: Optional[str] = None

    def as_dict(self) -> dict:
        # limit/remaining stay present even when None: None means unlimited
        data = {k: _plain(v) for k, v in asdict(self).items() if v is not None}
        data.setdefault("limit", None)
        data.setdefault("remaining", None)
        return data


class QuotaLedger:
    """
    Tracks and enforces the global and per-identity daily budgets.

    Attributes:
        store: Usage table collaborator
        scheme: "ip" or "user"; selects the identity budget rules
        today: Returns the current calendar day
    """

    def __init__(
        self,
        store: UsageStore,
        scheme: Optional[str] = None,
        today: Callable[[], datetime.date] = utc_today,
    ):
        self.store = store
        self.scheme = scheme or settings.identity_scheme
        self.today = today
        self.global_limit = _as_decimal(settings.daily_global_limit)
        self.identity_budget = _as_decimal(settings.daily_identity_budget)
        self.default_cost = _as_decimal(settings.question_cost_estimate)

    async def check_and_reserve_global(self, estimated_cost=None) -> GlobalDecision:
        """
        Check the platform-wide budget and commit one question's cost if allowed.

        Denied when ``current_cost + estimated_cost > global_limit``.
        """
        cost = _as_decimal(estimated_cost) if estimated_cost is not None else self.default_cost
        day = self.today()

        record = await self.store.get_global_usage(day) or GlobalUsageRecord(date=day)

        if record.total_cost + cost > self.global_limit:
            logger.warning("quota_denied", budget="global", current_cost=float(record.total_cost))
            return GlobalDecision(
                allowed=False,
                current_global_cost=record.total_cost,
                global_limit=self.global_limit,
                questions_served_today=record.question_count,
                reason=GLOBAL_LIMIT_REACHED,
                message=f"Daily platform limit reached (${self.global_limit:.0f}). Service will resume tomorrow.",
            )

        record.total_cost += cost
        record.question_count += 1
        await self.store.save_global_usage(record)

        return GlobalDecision(
            allowed=True,
            current_global_cost=record.total_cost,
            global_limit=self.global_limit,
            questions_served_today=record.question_count,
            remaining_global_budget=self.global_limit - record.total_cost,
        )

    async def check_and_reserve_identity(self, identity: str, estimated_cost=None) -> IdentityDecision:
        """
        Check one identity's daily budget and commit the question if allowed.

        Args:
            identity: IP address or user id, depending on the scheme
            estimated_cost: Cost of this question; defaults to the configured estimate
        """
        if self.scheme == "user":
            return await self.check_and_reserve_user(identity)
        return await self.check_and_reserve_ip(identity, estimated_cost)

    async def check_and_reserve_ip(self, ip_address: str, estimated_cost=None) -> IdentityDecision:
        cost = _as_decimal(estimated_cost) if estimated_cost is not None else self.default_cost
        if cost <= 0:
            raise ValueError("estimated_cost must be positive")

        day = self.today()
        limit = int(self.identity_budget // cost)

        record = await self.store.get_identity_usage("ip", ip_address, day) or IdentityUsageRecord(
            identity_key=ip_address, date=day
        )
        next_cost = record.total_cost + cost

        if record.question_count >= limit or next_cost > self.identity_budget:
            logger.warning(
                "quota_denied",
                budget="identity",
                scheme="ip",
                question_count=record.question_count,
                current_cost=float(record.total_cost),
            )
            return IdentityDecision(
                allowed=False,
                remaining=0,
                limit=limit,
                current_cost=record.total_cost,
                daily_budget=self.identity_budget,
                reason=IDENTITY_LIMIT_REACHED,
            )

        record.question_count += 1
        record.total_cost = next_cost
        await self.store.save_identity_usage("ip", record)

        return IdentityDecision(
            allowed=True,
            remaining=limit - record.question_count,
            limit=limit,
            current_cost=record.total_cost,
            remaining_budget=self.identity_budget - record.total_cost,
            daily_budget=self.identity_budget,
        )

    async def plan_for(self, user_id: str) -> tuple[str, Optional[int]]:
        plan = await self.store.get_user_plan(user_id) or settings.default_plan
        if plan not in settings.plan_limits:
            plan = settings.default_plan
        return plan, settings.plan_limits[plan]

    async def check_and_reserve_user(self, user_id: str) -> IdentityDecision:
        day = self.today()
        plan, limit = await self.plan_for(user_id)

        record = await self.store.get_identity_usage("user", user_id, day) or IdentityUsageRecord(
            identity_key=user_id, date=day
        )

        if limit is not None and record.question_count >= limit:
            logger.warning("quota_denied", budget="identity", scheme="user", plan=plan)
            return IdentityDecision(
                allowed=False, remaining=0, limit=limit, plan=plan, reason=IDENTITY_LIMIT_REACHED
            )

        record.question_count += 1
        await self.store.save_identity_usage("user", record)

        remaining = None if limit is None else limit - record.question_count
        return IdentityDecision(allowed=True, remaining=remaining, limit=limit, plan=plan)
