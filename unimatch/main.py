"""
UniMatch — FastAPI Application Entry Point

Wires the REST API under ``/api/v1`` and the chat socket at ``/ws`` into one
application.  On shutdown in-flight HTTP requests are given a grace period,
then every live chat socket is closed with ``1001 Going Away`` so clients
fall into their reconnect loop instead of hanging on a dead connection.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from unimatch.config import get_settings
from unimatch.database import async_session_factory, engine
from unimatch.realtime.manager import ConnectionManager, get_connection_manager

settings = get_settings()

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.LOG_LEVEL.upper())
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("unimatch")

DRAIN_TIMEOUT_SECONDS = 15


class InFlightRequests:
    """Counts HTTP requests still being served; sockets are not counted."""

    def __init__(self) -> None:
        self.count = 0

    async def drain(self, timeout: float = DRAIN_TIMEOUT_SECONDS) -> bool:
        """Wait for the count to reach zero; False if ``timeout`` ran out first."""
        deadline = time.monotonic() + timeout
        while self.count > 0:
            if time.monotonic() >= deadline:
                logger.warning("drain_timeout_exceeded", remaining_requests=self.count)
                return False
            await asyncio.sleep(0.25)
        return True


in_flight = InFlightRequests()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("startup_begin", environment=settings.ENVIRONMENT, log_level=settings.LOG_LEVEL)

    # Fail fast on a bad DATABASE_URL rather than on the first swipe.
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_reachable")

    yield

    logger.info("shutdown_begin", open_sockets=get_connection_manager().online_count())
    await in_flight.drain()
    await get_connection_manager().close_all()
    await engine.dispose()
    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when an HTTP request runs past ``timeout_seconds``."""

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(status_code=504, content={"detail": "Request timed out"})


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One ``request_handled`` event per HTTP request, with its duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        in_flight.count += 1
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        finally:
            in_flight.count -= 1

        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="UniMatch",
    description="Campus swipe, match and chat backend",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
)

# Last added runs first: CORS, then the timeout, then request logging.
app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep(
    connections: ConnectionManager = Depends(get_connection_manager),
) -> dict:
    """Readiness: the database answers; also reports how many users are online."""
    result: dict = {
        "status": "healthy",
        "database": "connected",
        "websocket_connections": connections.online_count(),
    }
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        result["database"] = f"error: {exc}"
        result["status"] = "degraded"
    return result


from unimatch.api.realtime import router as realtime_router  # noqa: E402
from unimatch.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
app.include_router(realtime_router)
