"""
api/main.py -- FastAPI application entry point for the auth service.

Exposes the AuthService orchestrator over HTTP: /signup, /login,
/verify-2fa, /verify-token, /logout, plus /health.

Run with:      python main.py
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- CORS headers for allowed browser origins, with
                              credentials so the session cookie is sent
  3. log_requests          -- one access-log line per request

Lifespan builds every backend once from Settings (memory / SQL / Redis, chosen
by configuration) and tears them down symmetrically on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.banned_tokens import BannedTokenStore, InMemoryBannedTokenStore
from auth.errors import (
    AuthError,
    IncorrectCredentials,
    InvalidCredentials,
    InvalidEmail,
    InvalidToken,
    MissingToken,
    UserAlreadyExists,
)
from auth.notifier import LoggingEmailClient
from auth.passwords import PasswordHashingPool
from auth.service import AuthService
from auth.store import InMemoryUserStore, SQLUserStore, UserStore
from auth.tokens import TokenService
from auth.two_fa import InMemoryTwoFACodeStore, TwoFACodeStore
from cache import store as redis_store
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authservice.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


async def build_user_store(settings: Settings, hasher: PasswordHashingPool) -> UserStore:
    if settings.user_store_backend == "sql":
        store = SQLUserStore(settings.database_url, hasher)
        await store.create_schema()
        return store
    return InMemoryUserStore(hasher)


def build_banned_token_store(settings: Settings) -> BannedTokenStore:
    if settings.token_store_backend == "redis":
        return redis_store.RedisBannedTokenStore(
            redis_store.connect(settings.redis_url), ttl=settings.banned_token_ttl_seconds
        )
    return InMemoryBannedTokenStore()


def build_two_fa_code_store(settings: Settings) -> TwoFACodeStore:
    if settings.two_fa_store_backend == "redis":
        return redis_store.RedisTwoFACodeStore(
            redis_store.connect(settings.redis_url), ttl=settings.two_fa_code_ttl_seconds
        )
    return InMemoryTwoFACodeStore()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the stores and the orchestrator on startup; close them on shutdown.

    The hashing pool exists before the user store (which verifies passwords
    on it), and every store exists before the AuthService that composes
    them. Each resource is registered for cleanup as soon as it exists, so a
    failed startup or a failing close() still releases everything else.
    """
    settings = get_settings()
    logger.info("Auth service starting up")
    async with AsyncExitStack() as resources:
        hasher = PasswordHashingPool(max_workers=settings.password_hash_workers)
        resources.callback(hasher.shutdown)
        user_store = await build_user_store(settings, hasher)
        resources.push_async_callback(user_store.close)
        banned_token_store = build_banned_token_store(settings)
        resources.push_async_callback(banned_token_store.close)
        two_fa_code_store = build_two_fa_code_store(settings)
        resources.push_async_callback(two_fa_code_store.close)
        logger.info(
            "Stores initialized (users=%s, banned_tokens=%s, two_fa=%s)",
            settings.user_store_backend,
            settings.token_store_backend,
            settings.two_fa_store_backend,
        )

        app.state.settings = settings
        app.state.auth_service = AuthService(
            user_store=user_store,
            banned_token_store=banned_token_store,
            two_fa_code_store=two_fa_code_store,
            email_client=LoggingEmailClient(),
            tokens=TokenService(settings),
            hasher=hasher,
        )

        yield

        logger.info("Auth service shutting down")
    logger.info("Auth service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Auth Service",
    description="Signup, login with optional e-mailed second factor, and revocable session tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each add_middleware() around the previous ones, so the last
# registered runs first. Registration order here is innermost to outermost.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One access-log line per request. Bodies and cookies are never logged."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s -> %d in %.1fms (client=%s)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.client.host if request.client else "-",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    allow_credentials=True,
    max_age=3600,
)

# Outermost: a bad Host is refused before CORS can answer a preflight.
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every non-2xx body is an ErrorResponse envelope. 5xx bodies are generic; the
# cause goes to the log only.
# ---------------------------------------------------------------------------

# Kinds not listed here (UnexpectedError, and the internal-only UserNotFound /
# LoginAttemptIdNotFound if one ever escapes the orchestrator) are served as 500.
_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    InvalidCredentials: 400,
    InvalidEmail: 400,
    MissingToken: 400,
    IncorrectCredentials: 401,
    InvalidToken: 401,
    UserAlreadyExists: 409,
}


def _error_response(status: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    response = JSONResponse(status_code=status, content=body.model_dump())
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate an AuthError into its HTTP status and error envelope."""
    status = _AUTH_ERROR_STATUS.get(type(exc), 500)
    if status == 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
        return _error_response(500, "unexpected_error", "Unexpected error")
    return _error_response(status, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 for a body that is not the expected JSON shape.

    Only the offending field paths are echoed. Pydantic's error list also
    carries the submitted input, which may be a password.
    """
    fields = sorted({".".join(str(part) for part in err.get("loc", ()) if part != "body") for err in exc.errors()})
    return _error_response(
        422,
        "validation_error",
        "Request body is malformed.",
        detail=", ".join(f for f in fields if f) or None,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and wrong methods."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything that escaped the AuthError taxonomy. Logged with traceback."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "unexpected_error", "Unexpected error")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
