"""FastAPI application factory with CORS, auth middleware, and lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from marketcall.api.auth import decode_user_id
from marketcall.api.deps import app_state
from marketcall.config import load_config
from marketcall.data.yfinance_client import YFinanceClient
from marketcall.errors import (
    MarketCallError,
    NotAuthenticatedError,
    NotFoundError,
    PersistenceError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
    ValidationError,
)
from marketcall.learning.predictions import PredictionManager
from marketcall.learning.ranking import RankingAggregator
from marketcall.registry.db import Database
from marketcall.registry.queries import Registry

logger = logging.getLogger(__name__)

API_PREFIX = "/api/marketcall"

# Most specific class first; UpstreamTimeoutError subclasses UpstreamUnavailableError.
ERROR_STATUS: list[tuple[type[MarketCallError], int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (NotAuthenticatedError, 401),
    (UpstreamTimeoutError, 504),
    (UpstreamUnavailableError, 503),
    (PersistenceError, 503),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the database pool and quote client."""
    config = load_config()

    db = Database(config.db_dsn)
    db.connect()
    registry = Registry(db)

    quotes = YFinanceClient(
        timeout_seconds=config.quote_timeout_seconds,
        cache_ttl_seconds=config.quote_cache_ttl_seconds,
    )
    prediction_manager = PredictionManager(registry, quotes)
    ranking_aggregator = RankingAggregator(
        registry,
        prediction_manager,
        limit=config.ranking_limit,
        auto_confirm=config.auto_confirm_on_ranking,
    )

    app_state.config = config
    app_state.db = db
    app_state.registry = registry
    app_state.quotes = quotes
    app_state.prediction_manager = prediction_manager
    app_state.ranking_aggregator = ranking_aggregator

    logger.info("API started: DB and quote client ready")
    yield

    quotes.close()
    db.close()
    logger.info("API shutdown complete")


# Paths that don't require authentication
PUBLIC_PATHS = {
    f"{API_PREFIX}/system/health",
    f"{API_PREFIX}/ranking",
    f"{API_PREFIX}/quotes",
}


def _resolve_user(request: Request) -> str | None:
    config = app_state.config

    # Dev mode: no secret configured, trust the header
    if not config or not config.auth_secret_key:
        return request.headers.get("x-user-id") or None

    # Internal token bypass for trusted callers acting on behalf of a user
    internal_token = request.headers.get("x-internal-token")
    if internal_token and config.internal_api_token and internal_token == config.internal_api_token:
        return request.headers.get("x-user-id") or None

    token = request.cookies.get("session")
    if not token:
        auth = request.headers.get("authorization", "")
        if auth.lower().startswith("bearer "):
            token = auth[7:].strip()
    if not token:
        return None
    return decode_user_id(token, config.auth_secret_key)


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach the caller's user id to ``request.state``; reject unauthenticated API calls."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        request.state.user_id = None

        if not path.startswith(API_PREFIX) or request.method == "OPTIONS":
            return await call_next(request)

        request.state.user_id = _resolve_user(request)
        if request.state.user_id is None and path not in PUBLIC_PATHS:
            config = app_state.config
            # In dev mode routes decide for themselves via get_current_user
            if config and config.auth_secret_key:
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Not authenticated", "code": NotAuthenticatedError.code},
                )

        return await call_next(request)


def _status_for(exc: MarketCallError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


async def marketcall_error_handler(request: Request, exc: MarketCallError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "code": exc.code})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content={
            "detail": f"{location}: {message}" if location else message,
            "code": ValidationError.code,
        },
    )


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        use_lifespan: If False, skip the production lifespan (useful for testing
            where deps are injected via app_state directly).
    """
    app = FastAPI(
        title="MarketCall API",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )

    config = app_state.config or load_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AuthMiddleware)
    app.add_exception_handler(MarketCallError, marketcall_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    from marketcall.api.routes import predictions, profile, quotes, ranking, stats, system

    app.include_router(predictions.router, prefix=API_PREFIX, tags=["predictions"])
    app.include_router(ranking.router, prefix=API_PREFIX, tags=["ranking"])
    app.include_router(stats.router, prefix=API_PREFIX, tags=["stats"])
    app.include_router(quotes.router, prefix=API_PREFIX, tags=["quotes"])
    app.include_router(profile.router, prefix=API_PREFIX, tags=["profile"])
    app.include_router(system.router, prefix=API_PREFIX, tags=["system"])

    return app
