"""
Quota ledger endpoint routes.
"""

from fastapi import APIRouter, Depends

from tutor_api.dependencies import get_quota_ledger
from tutor_api.exceptions import MissingFieldError
from tutor_api.models import UsageCheckRequest
from tutor_api.routing.quota import RESET_TIME, QuotaLedger

router = APIRouter(
    tags=["usage"],
)


@router.post(
    "/usage",
    summary="Check and reserve a caller's daily budget",
    description="""
    Check one caller's daily budget and, when allowed, count the question.

    - With `user_id`: the plan-based question limit of a signed-in user
    - With `ip_address`: the per-IP daily spend, `cost_estimate` per question

    A denied check never changes the ledger.
    """,
)
async def check_usage(
    request: UsageCheckRequest,
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> dict:
    if request.user_id:
        decision = await ledger.check_and_reserve_user(request.user_id)
    elif request.ip_address:
        decision = await ledger.check_and_reserve_ip(request.ip_address, request.cost_estimate)
    else:
        raise MissingFieldError("ip_address")

    return {**decision.as_dict(), "resetTime": RESET_TIME}


@router.post(
    "/global-usage",
    summary="Check and reserve the platform budget",
    description="""
    Check the platform-wide daily budget and, when allowed, count one
    question at the configured cost estimate.
    """,
)
async def check_global_usage(ledger: QuotaLedger = Depends(get_quota_ledger)) -> dict:
    decision = await ledger.check_and_reserve_global()
    result = decision.as_dict()
    if not decision.allowed:
        result["reset_time"] = RESET_TIME
    return result
