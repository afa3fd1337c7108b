"""
knotulus_api.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the commerce HTTP client.
- Encapsulate app.state access patterns (settings/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from knotulus_api.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The Settings instance the app was built with (see `create_app`).
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Routers commit explicitly.
    async with session_factory() as session:
        yield session


async def commerce_http(
    settings: Settings = Depends(settings_dep),
) -> AsyncIterator[httpx.AsyncClient]:
    # Tests override this dependency with an httpx.MockTransport-backed client.
    async with httpx.AsyncClient(timeout=settings.upstream_timeout_seconds) as http:
        yield http
