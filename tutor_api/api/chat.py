"""
Chat endpoint routes.
"""

from fastapi import APIRouter, Depends, Request

from tutor_api.dependencies import get_router_service
from tutor_api.models import ChatRequest, ChatResponse
from tutor_api.services.router_service import RouterService

router = APIRouter(
    tags=["chat"],
    responses={
        400: {"description": "Bad Request - message is missing"},
        401: {"description": "Unauthorized - sign-in required"},
        429: {"description": "Too Many Requests - daily budget exhausted"},
        503: {"description": "Service Unavailable - no model could answer"},
    },
)


def client_ip(request: Request) -> str:
    """
    Resolve the caller's address.

    Prefers the edge proxy header, then the first X-Forwarded-For hop, then
    the socket peer.
    """
    connecting_ip = request.headers.get("CF-Connecting-IP")
    if connecting_ip:
        return connecting_ip.strip()

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "unknown"


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    summary="Answer a tutoring question",
    description="""
    Answer a student's question as cheaply as possible.

    The request is tried against, in order:
    - The response cache (fresh, similar enough previous answer)
    - Deterministic answers (arithmetic, FAQ, courtesy replies)
    - The daily quota (global budget, then the caller's budget)
    - The cheap model, subject to a quality gate
    - The premium model, when configured

    Messages longer than the configured maximum are truncated.

    **Error Scenarios:**
    - 400: message missing or empty
    - 401: signed-in deployments only, user_id missing
    - 429: daily platform or caller budget exhausted
    - 503: no model produced an acceptable answer
    """,
)
async def chat(
    body: ChatRequest,
    request: Request,
    router_service: RouterService = Depends(get_router_service),
) -> ChatResponse:
    return await router_service.handle_request(body, client_ip(request))
