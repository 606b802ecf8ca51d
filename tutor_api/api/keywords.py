"""
Keyword classification endpoint routes.
"""

from fastapi import APIRouter

from tutor_api.models import KeywordRequest, KeywordResponse
from tutor_api.routing.keywords import Deterministic, classify

router = APIRouter(
    tags=["keywords"],
)


@router.post(
    "/keywords",
    summary="Classify a query",
    description="""
    Decide whether a query can be answered without a model.

    Returns `useAI: false` with the canned response for arithmetic, FAQ and
    courtesy queries, or `useAI: true` with the reason a model is needed.
    """,
)
async def keywords(request: KeywordRequest) -> dict:
    match = classify(request.query)
    if isinstance(match, Deterministic):
        result = KeywordResponse(
            use_ai=False,
            response=match.response,
            type=match.match_type,
            confidence=match.confidence,
        )
    else:
        result = KeywordResponse(use_ai=True, reason=match.reason)
    return result.model_dump(by_alias=True, exclude_none=True)
