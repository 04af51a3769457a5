"""
api/main.py -- FastAPI application entry point for AccountHub.

Install:   pip install -e .
Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware, as a request meets it (Starlette wraps the last one added
outermost):
  log_requests           method, path, status, latency, client
  SlowAPIMiddleware      per-route limits declared with @limiter.limit
  CORSMiddleware         browser origins from CORS_ORIGINS
  TrustedHostMiddleware  Host header must match ALLOWED_HOSTS

Lifespan builds the record store and everything that hangs off it (auth
service, notification hub, change watcher) and tears it down in reverse.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.accounts import router as accounts_router
from api.routes.feeds import router as feeds_router
from auth.reset import ResetTokenManager
from auth.service import AuthService
from auth.store import AccountStore
from core.config import get_settings
from core.errors import AccountError, ServerError
from live.hub import NotificationHub
from live.watcher import ChangeWatcher
from store.records import RecordStore

API_VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("accounthub.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def wire_state(app: FastAPI, records: RecordStore) -> None:
    """Build the services on top of records and attach them to app.state.

    Must run on the event loop: the hub binds to the running loop so writes
    from worker threads can hand their broadcasts back to it.
    """
    app.state.records = records
    app.state.auth_service = AuthService(
        AccountStore(records),
        ResetTokenManager(ttl_seconds=_settings.reset_token_ttl_seconds),
    )
    hub = NotificationHub(records.read, queue_size=_settings.sse_queue_size)
    hub.bind(asyncio.get_running_loop())
    app.state.hub = hub
    app.state.watcher = ChangeWatcher(records, hub.publish)
    app.state.watcher.start()


def unwire_state(app: FastAPI) -> None:
    app.state.watcher.stop()
    app.state.hub.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The watcher stops before the hub closes so no broadcast lands
    on a closed hub, and the store closes last.
    """
    logger.info("AccountHub API starting up")
    records = RecordStore(_settings.database_url)
    wire_state(app, records)
    logger.info("Record store ready (%s)", records.engine.url.render_as_string(hide_password=True))

    yield

    unwire_state(app)
    records.close()
    logger.info("AccountHub API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AccountHub API",
    description="Account credentials, password reset, and live change notifications.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(accounts_router, prefix="/api", tags=["Accounts"])
app.include_router(feeds_router, prefix="/api", tags=["Feeds"])
# The live event-stream router is mounted by asgi.py, not here.

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves as {"error": "<short message>"} regardless of origin.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Domain failures raised by the services carry their own status and message."""
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Unparseable or mistyped request bodies and query params."""
    logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
    return _error(400, "invalid body")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes and other framework-raised HTTP errors.

    Registered for Starlette's HTTPException so the router's own 404/405
    responses get the JSON envelope too.
    """
    return _error(exc.status_code, str(exc.detail).lower())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429; Retry-After tells clients how long to wait."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "too many requests")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected failures.

    The exception and traceback go to the log only; the client gets a
    generic message so internals never leak.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    error = ServerError()
    return _error(error.status_code, error.message)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
