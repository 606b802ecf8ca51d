"""
API routers for the Tutor Chat Gateway.

This package contains all API endpoint routers organized by functionality.
"""

from tutor_api.api.cache import router as cache_router
from tutor_api.api.chat import router as chat_router
from tutor_api.api.config_routes import router as config_router
from tutor_api.api.conversations import router as conversations_router
from tutor_api.api.health import router as health_router
from tutor_api.api.keywords import router as keywords_router
from tutor_api.api.monitoring import router as monitoring_router
from tutor_api.api.usage import router as usage_router

__all__ = [
    "health_router",
    "chat_router",
    "cache_router",
    "keywords_router",
    "usage_router",
    "monitoring_router",
    "config_router",
    "conversations_router",
]
