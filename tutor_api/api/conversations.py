"""
Conversation history endpoint routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from tutor_api.dependencies import get_conversation_service
from tutor_api.exceptions import MissingFieldError
from tutor_api.models import ConversationRequest
from tutor_api.services.conversation_service import ConversationService

router = APIRouter(
    tags=["conversations"],
    responses={400: {"description": "Bad Request - invalid action or missing parameters"}},
)


@router.post(
    "/conversations",
    summary="Store a conversation or read today's count",
    description="""
    **Actions:**
    - `store`: append an exchange to the fingerprint's history
    - `getDailyCount`: questions stored today and how many remain
    """,
)
async def post_conversation(
    request: ConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    if request.action not in ("store", "getDailyCount"):
        return JSONResponse(status_code=400, content={"error": "Invalid action"})
    if not request.fingerprint_id:
        raise MissingFieldError("fingerprintId")

    if request.action == "store":
        return await service.store_conversation(
            request.fingerprint_id,
            request.user_message,
            request.ai_response,
            request.conversation_id,
        )
    return await service.daily_count(request.fingerprint_id)


@router.get(
    "/conversations",
    summary="List conversations",
    description="`?action=list` returns every conversation newest first; `?fingerprintId=` one history.",
)
async def get_conversations(
    action: Optional[str] = None,
    fingerprint_id: Optional[str] = Query(default=None, alias="fingerprintId"),
    service: ConversationService = Depends(get_conversation_service),
):
    if action == "list":
        return await service.list_all()
    if fingerprint_id:
        return await service.for_fingerprint(fingerprint_id)
    return JSONResponse(status_code=400, content={"error": "Missing parameters"})
