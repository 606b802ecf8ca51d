"""
Browser client configuration routes.
"""

from fastapi import APIRouter

from tutor_api.config import settings
from tutor_api.exceptions import StorageNotConfiguredError

router = APIRouter(
    tags=["config"],
)


@router.get(
    "/config",
    summary="Auth client configuration",
    description="Public settings the browser needs to start its sign-in client.",
)
async def client_config() -> dict:
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise StorageNotConfiguredError("Supabase")
    return {
        "supabaseUrl": settings.supabase_url,
        "supabaseAnonKey": settings.supabase_anon_key,
        "configured": True,
    }
