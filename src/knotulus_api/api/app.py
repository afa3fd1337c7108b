"""
knotulus_api.api.app

FastAPI app factory for the Knotulus backend.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Initialize and dispose shared infrastructure (DB engine, rate limiter + sweeper).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from knotulus_api import __version__
from knotulus_api.api.errors import register_error_handlers
from knotulus_api.api.routers.dev_auth import router as dev_auth_router
from knotulus_api.api.routers.health import router as health_router
from knotulus_api.api.routers.shops import router as shops_router
from knotulus_api.api.routers.users import router as users_router
from knotulus_api.api.routers.waitlist import router as waitlist_router
from knotulus_api.db.session import create_engine, create_sessionmaker, init_db
from knotulus_api.observability.logging import configure_logging, get_logger
from knotulus_api.observability.middleware import RequestContextMiddleware
from knotulus_api.policy import SecurityPolicy, get_policy
from knotulus_api.ratelimit.limiter import RateLimiter
from knotulus_api.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings, policy: SecurityPolicy | None = None) -> FastAPI:
    policy = policy or get_policy()
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        redact=policy.sensitive_fields,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod schemas are managed outside the service.
            await init_db(engine)

        limiter: RateLimiter = app.state.rate_limiter
        sweeper = asyncio.create_task(
            limiter.run_sweeper(settings.rate_limit_sweep_interval_seconds),
            name="rate-limit-sweeper",
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Knotulus API",
        version=__version__,
        docs_url=None if settings.env == "prod" else "/docs",
        openapi_url=None if settings.env == "prod" else "/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.policy = policy
    app.state.rate_limiter = RateLimiter(policy)

    # Last added runs first: request context wraps CORS, which answers preflights.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(policy.cors.allowed_origins),
        allow_methods=list(policy.cors.allowed_methods),
        allow_headers=list(policy.cors.allowed_headers),
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            "x-request-id",
        ],
        max_age=policy.cors.max_age,
    )
    app.add_middleware(RequestContextMiddleware)

    register_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(waitlist_router)
    app.include_router(users_router)
    app.include_router(shops_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Business logic stays in routers/services; this module only composes the app.
