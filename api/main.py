"""
api/main.py -- FastAPI application entry point for LoanDesk.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware              -- answers browser pre-flight probes, adds CORS headers
  2. log_requests                -- method, path, status, latency per request
  3. authenticate_and_authorize  -- request authenticator + access policy

Every request is authenticated exactly once, in (3), before routing. A request
the access policy denies is answered there with 401/403 and never reaches a
route handler, so a denied request cannot cause a write.

Lifespan builds the process-wide objects once from Settings (token codec,
stores, authenticator, loan service) and hangs them on app.state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.loans import router as loans_router
from api.routes.v1.users import router as users_router
from auth.authenticator import Authenticator
from auth.dependencies import authenticate_request
from auth.policy import AccessDecision, check_access
from auth.seed import seed_demo_users
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings
from core.exceptions import LoanDeskError
from loans.service import LoanService
from loans.store import LoanStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loandesk.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared resources on startup and dispose of them on shutdown.

    Settings are read once here. Invalid settings (e.g. a short SECRET_KEY)
    raise before the server accepts a single request.
    """
    settings = get_settings()
    logger.info("LoanDesk API starting up")

    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.user_store = UserStore(settings.database_url)
    app.state.loan_store = LoanStore(settings.database_url)
    app.state.authenticator = Authenticator(app.state.user_store, app.state.token_codec)
    app.state.loan_service = LoanService(app.state.loan_store)
    if settings.seed_demo_users:
        seed_demo_users(app.state.authenticator)
    logger.info("Stores initialized (token lifetime %d ms)", settings.token_expire_ms)

    yield

    app.state.user_store.close()
    app.state.loan_store.close()
    logger.info("LoanDesk API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="LoanDesk API",
    description="Role-gated loan applications with rule-based eligibility scoring.",
    version=VERSION,
    lifespan=lifespan,
)


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each newly added middleware around the existing stack, so
# the last one registered sees the request first. Register innermost first.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def authenticate_and_authorize(request: Request, call_next):
    """Resolve the principal once, then apply the access rules.

    The store lookup is blocking, so it runs in the thread pool. Token
    failures are already folded into "anonymous" by authenticate_request();
    the response never says why access was denied.
    """
    state = request.app.state
    principal = await run_in_threadpool(
        authenticate_request,
        request.headers.get("Authorization"),
        state.token_codec,
        state.user_store,
    )
    request.state.principal = principal

    decision = check_access(request.method, request.url.path, principal)
    if decision is AccessDecision.UNAUTHENTICATED:
        logger.info("Denied anonymous %s %s", request.method, request.url.path)
        return _error_response(401, "unauthorized", "Access denied.")
    if decision is AccessDecision.FORBIDDEN:
        logger.info(
            "Denied %s (%s) %s %s", principal.username, principal.role.value, request.method, request.url.path
        )
        return _error_response(403, "forbidden", "Access denied.")
    return await call_next(request)


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


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(loans_router, prefix="/api/v1", tags=["Loans"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(LoanDeskError)
async def domain_error_handler(request: Request, exc: LoanDeskError) -> JSONResponse:
    """Map domain errors to their HTTP status and error code."""
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route helpers raise HTTPException with a dict detail ({"code", "message"}).
    Use it directly as the error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Outside /api/v1 so the access rules treat it as public -- load balancers
# probe it without credentials.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
