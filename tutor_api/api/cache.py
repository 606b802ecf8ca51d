"""
Response cache endpoint routes.
"""

from fastapi import APIRouter, Depends

from tutor_api.dependencies import get_response_cache
from tutor_api.exceptions import MissingFieldError
from tutor_api.models import CacheLookupResponse, CacheRequest
from tutor_api.routing.cache import ResponseCache

router = APIRouter(
    tags=["cache"],
    responses={
        400: {"description": "Bad Request - invalid action or missing response"},
        500: {"description": "Cache not configured"},
    },
)


@router.post(
    "/cache",
    summary="Read or write the response cache",
    description="""
    Direct access to the response cache.

    **Actions:**
    - `get`: look up the answer for a query (miss when older than 24 hours)
    - `set`: store an answer for a query (`response` required)
    - `increment`: bump the hit counter of an existing entry
    """,
)
async def cache_action(
    request: CacheRequest,
    cache: ResponseCache = Depends(get_response_cache),
):
    if request.action == "get":
        lookup = await cache.get(request.query)
        return CacheLookupResponse(
            hit=lookup.hit,
            cached=lookup.hit,
            response=lookup.response,
            similarity=lookup.similarity,
            age_ms=lookup.age_ms,
        ).model_dump(exclude_none=True)

    if request.action == "set":
        if not request.response:
            raise MissingFieldError("response", "Response required for caching")
        await cache.set(request.query, request.response)
        return {"cached": True}

    await cache.increment(request.query)
    return {"incremented": True}
