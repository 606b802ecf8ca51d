"""
Middleware and error handlers for the tutor gateway.

This module contains HTTP middleware for CORS, logging and request tracking,
as well as the exception handlers that turn service errors into the JSON
bodies the browser client expects.
"""

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tutor_api.exceptions import (
    AuthRequiredError,
    MissingFieldError,
    QuotaExceededError,
    StorageNotConfiguredError,
    UpstreamUnavailableError,
)
from tutor_api.routing.quota import RESET_TIME

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


async def cors_middleware(request: Request, call_next):
    """
    Answer preflight requests before routing and add CORS headers to every response.
    """
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)

    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


async def logging_middleware(request: Request, call_next):
    """
    HTTP middleware that logs all requests and responses with timing information.

    Assigns a unique request ID to each request for tracing and logs the
    request method, path, status code, and latency. The request ID is also
    added to response headers as 'X-Request-ID' for debugging.

    Args:
        request: The incoming HTTP request
        call_next: Function to call the next middleware/endpoint

    Returns:
        Response from the endpoint with X-Request-ID header
    """
    request_id = str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    start_time = time.time()
    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id

        structlog.get_logger().info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_s=process_time,
        )
        return response
    except Exception as e:
        process_time = time.time() - start_time
        structlog.get_logger().error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            latency_s=process_time,
            error=str(e),
        )
        raise


def _field_name(loc: tuple) -> str:
    names = [str(part) for part in loc if part != "body"]
    return names[-1] if names else "body"


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handler for request body validation errors.

    Missing or empty fields become ``{"error": "<field> is required"}``; any
    other validation failure reports the first error message.
    """
    first = exc.errors()[0] if exc.errors() else {}
    field = _field_name(tuple(first.get("loc", ())))

    if first.get("type") in ("missing", "string_too_short"):
        message = f"{field} is required"
    else:
        message = f"Invalid {field}: {first.get('msg', 'bad value')}"

    return JSONResponse(status_code=400, content={"error": message})


async def missing_field_handler(request: Request, exc: MissingFieldError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def auth_required_handler(request: Request, exc: AuthRequiredError) -> JSONResponse:
    """
    Handler for AuthRequiredError exceptions.

    Returns a 401 with the login URL the client should redirect to.
    """
    return JSONResponse(
        status_code=401,
        content={"error": "Authentication required", "message": str(exc), "login_url": exc.login_url},
    )


async def quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    """
    Handler for QuotaExceededError exceptions.

    Returns a 429 naming the exhausted budget and when it resets.

    Args:
        request: The HTTP request that triggered the error
        exc: The QuotaExceededError exception

    Returns:
        JSONResponse with 429 status code
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": "Daily limit reached",
            "message": str(exc),
            "reason": exc.reason,
            "reset_time": RESET_TIME,
            **exc.metadata,
        },
    )


async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    """
    Handler for UpstreamUnavailableError exceptions.

    Returns a 503 status code when no model produced an answer.
    """
    return JSONResponse(
        status_code=503,
        content={
            "error": "AI service temporarily unavailable",
            "message": str(exc),
            "suggestion": "Try asking a simpler question or check back later.",
            "model_unavailable": exc.model_name,
        },
    )


async def storage_not_configured_handler(request: Request, exc: StorageNotConfiguredError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for anything the other handlers do not cover.

    Runs outside the CORS middleware, so the CORS headers are set here.
    """
    structlog.get_logger().error("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
        headers=CORS_HEADERS,
    )


def register_middleware(app: FastAPI) -> None:
    """
    Register all middleware with the FastAPI application.

    The logging middleware is added last so it wraps CORS and sees preflight
    requests too.

    Args:
        app: The FastAPI application instance
    """
    app.middleware("http")(cors_middleware)
    app.middleware("http")(logging_middleware)


def register_error_handlers(app: FastAPI) -> None:
    """
    Register all custom exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(MissingFieldError, missing_field_handler)
    app.add_exception_handler(AuthRequiredError, auth_required_handler)
    app.add_exception_handler(QuotaExceededError, quota_exceeded_handler)
    app.add_exception_handler(UpstreamUnavailableError, upstream_unavailable_handler)
    app.add_exception_handler(StorageNotConfiguredError, storage_not_configured_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
