"""
Main application module for the Tutor Chat Gateway.

Contains the create_app factory function for configuring and initializing
the FastAPI application with all routers, middleware, and error handlers.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from tutor_api.api import (
    cache_router,
    chat_router,
    config_router,
    conversations_router,
    health_router,
    keywords_router,
    monitoring_router,
    usage_router,
)
from tutor_api.config import settings
from tutor_api.dependencies import get_usage_store
from tutor_api.logging_config import configure_logging
from tutor_api.middleware import register_error_handlers, register_middleware
from tutor_api.storage.sql import SqlUsageStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the usage tables when the ledger lives in a database."""
    if settings.storage_backend == "sql":
        store = get_usage_store()
        if isinstance(store, SqlUsageStore):
            await store.create_tables()
            structlog.get_logger().info("usage_tables_ready")
    yield


def create_app() -> FastAPI:
    """
    Creates and configures the FastAPI application instance.

    Sets up logging, middleware, error handlers, and API routers.

    Dependency injection is handled through tutor_api/dependencies.py using
    @lru_cache() for singleton management.

    Returns:
        Configured FastAPI application
    """
    configure_logging()

    app = FastAPI(
        title="Tutor Chat Gateway",
        description="Cost-aware tutoring chat: response cache, canned answers, daily budgets and tiered models.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Register middleware and error handlers
    register_error_handlers(app)
    register_middleware(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(cache_router)
    app.include_router(keywords_router)
    app.include_router(usage_router)
    app.include_router(monitoring_router)
    app.include_router(config_router)
    app.include_router(conversations_router)

    return app


app = create_app()
