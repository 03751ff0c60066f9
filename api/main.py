"""
api/main.py -- FastAPI application entry point for itdoc.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- request/latency logging
  2. auth_gate             -- route-level login/dashboard redirects (auth/gate.py)
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan creates the database engine and both stores on startup and disposes
the engine on shutdown. The stores receive the engine through their
constructors; nothing in the codebase holds a module-global connection.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse, ValidationIssue
from api.routes.v1.auth import router as auth_router
from api.routes.v1.organizations import router as organizations_router
from auth.dependencies import is_authenticated
from auth.gate import gate_redirect
from auth.store import UserStore
from core.config import get_settings
from core.database import create_db_engine, init_schema, ping
from core.errors import StoreError
from orgs.store import OrganizationStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("itdoc.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Both stores share one Engine so the org + owner-membership
    transaction and the users FK live in the same database.
    """
    logger.info("itdoc API starting up")
    engine = create_db_engine(_settings.database_url)
    init_schema(engine)
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.org_store = OrganizationStore(engine)
    logger.info("Database initialized (users=%d)", app.state.user_store.count_users())

    yield

    engine.dispose()
    logger.info("itdoc API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="itdoc API",
    description="Multi-tenant IT documentation: accounts, organizations, and memberships.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the LAST registration is the
# outermost layer. Register innermost first: SlowAPI -> CORS -> TrustedHost.
# The @app.middleware("http") functions below are registered after these and
# therefore run before them.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Route gate middleware
#
# Runs on every request before any handler. The decision itself is the pure
# function auth.gate.gate_redirect(); this wrapper only supplies the two
# inputs (token validity, path) and turns a target into a 302.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def auth_gate(request: Request, call_next):
    target = gate_redirect(is_authenticated(request), request.url.path)
    if target is not None:
        return RedirectResponse(target, status_code=302)
    return await call_next(request)


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(organizations_router, prefix="/api/v1", tags=["Organizations"])
# Web form routes are mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, error: ErrorDetail, issues: list | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, issues=issues).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(
        429,
        ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc.detail)),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one issue per offending field.

    The leading location segment ("body", "query", "path") is dropped so a
    client can map issue.path straight onto its form fields.
    """
    issues = [
        ValidationIssue(
            path=[str(p) if not isinstance(p, int) else p for p in err.get("loc", ())[1:]],
            message=err.get("msg", "Invalid value."),
            code=err.get("type", "invalid"),
        )
        for err in exc.errors()
    ]
    return _error_response(
        400,
        ErrorDetail(code="validation_failed", message="Validation failed."),
        issues=issues,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on the Starlette base class so router-level 404/405 responses
    use the same envelope as errors raised by route handlers.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already a dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    response = _error_response(exc.status_code, ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Catch typed store errors that no route translated.

    In practice this is StoreFailure. The store has already logged the
    underlying database exception; the client gets a generic message only.
    """
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.code)
    return _error_response(500, ErrorDetail(code="internal_error", message="An unexpected error occurred."))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, ErrorDetail(code="internal_error", message="An unexpected error occurred."))


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers and monitors must reach it.
# The route gate passes /api/* through, so this is reachable while logged out.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database = "ok" if ping(request.app.state.engine) else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
