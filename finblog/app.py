from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from finblog.api.error_handling import register_exception_handlers
from finblog.api.routes import router
from finblog.api.schemas import HealthResponse
from finblog.logging import get_logger, set_correlation_id
from finblog.service.errors import AuthError

logger = get_logger(__name__)

__version__ = "0.1.0"

HEALTH_CHECK_TIMEOUT_SECONDS = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime at startup and release its connections on shutdown.

    Configuration errors are not caught: a service without OAuth credentials
    must fail to start rather than serve broken logins.
    """
    from finblog.service.runtime import get_runtime

    runtime = get_runtime()
    logger.info("startup_complete", version=__version__, store_type=type(runtime.store).__name__)

    yield

    try:
        await get_runtime().close()
        logger.info("runtime_cleanup_complete")
    except AuthError as exc:
        logger.error("shutdown_failed", error=str(exc))


async def add_correlation_id(request, call_next):
    """Tag each request with a correlation ID.

    Taken from the ``X-Request-ID`` header when the client sends one, else
    generated; echoed back on the response.
    """
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if request.url.path.startswith("/auth/") or request.url.path in ("/healthz", "/api/auth/me"):
        response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
    return response


async def health() -> JSONResponse:
    """Report whether the session store answers."""
    from finblog.service.runtime import get_runtime

    runtime = get_runtime()
    checks: Dict[str, Dict[str, Any]] = {}
    store_type = type(runtime.store).__name__
    try:
        await asyncio.wait_for(runtime.store.ping(), HEALTH_CHECK_TIMEOUT_SECONDS)
        checks["session_store"] = {"status": "healthy", "type": store_type}
    except asyncio.TimeoutError:
        logger.error(
            "health_check_timeout", component="session_store", timeout=HEALTH_CHECK_TIMEOUT_SECONDS
        )
        checks["session_store"] = {"status": "unhealthy", "type": store_type, "error": "timeout"}
    except AuthError as exc:
        logger.error("health_check_session_store_failed", error=str(exc))
        checks["session_store"] = {"status": "unhealthy", "type": store_type, "error": exc.message}

    healthy = all(check["status"] == "healthy" for check in checks.values())
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        checks=checks,
        version=__version__,
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())


def create_app() -> FastAPI:
    application = FastAPI(title="finblog auth", version=__version__, lifespan=lifespan)
    # Starlette runs the last registered middleware first
    application.middleware("http")(add_security_headers)
    application.middleware("http")(add_correlation_id)
    register_exception_handlers(application)
    application.include_router(router)
    application.add_api_route(
        "/healthz", health, methods=["GET"], response_model=HealthResponse, tags=["health"]
    )
    return application


app = create_app()
