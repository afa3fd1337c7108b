"""
tests.conftest

Shared fixtures: an app on a throwaway SQLite file with its lifespan running, an
in-process HTTP client, token minting, and a stubbed commerce API.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from knotulus_api.api.app import create_app
from knotulus_api.api.deps import commerce_http
from knotulus_api.auth.jwt import JwtConfig, issue_token
from knotulus_api.settings import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        log_level="WARNING",
        jwt_secret="test-secret",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'knotulus-test.db'}",
    )


@dataclass
class CommerceStub:
    """
    Fake commerce API. Orders are returned for the first and second orders.json
    calls (period2, then period1), matching the service's call order.
    """

    orders_period2: list[dict[str, Any]] = field(default_factory=list)
    orders_period1: list[dict[str, Any]] = field(default_factory=list)
    customer_count: int = 0
    product_count: int = 0
    # path suffix -> status code to fail with
    failures: dict[str, int] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for suffix, status in self.failures.items():
            if path.endswith(suffix):
                return httpx.Response(status, text='{"errors":"upstream says no"}')
        if path.endswith("/orders.json"):
            seen = sum(1 for r in self.requests if r.url.path.endswith("/orders.json"))
            orders = self.orders_period2 if seen == 1 else self.orders_period1
            return httpx.Response(200, json={"orders": orders})
        if path.endswith("/customers/count.json"):
            return httpx.Response(200, json={"count": self.customer_count})
        if path.endswith("/products/count.json"):
            return httpx.Response(200, json={"count": self.product_count})
        return httpx.Response(404, json={"errors": "Not Found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def commerce() -> CommerceStub:
    return CommerceStub()


@pytest.fixture
def app_factory(settings: Settings, commerce: CommerceStub) -> Callable[..., FastAPI]:
    def _build(**kwargs: Any) -> FastAPI:
        app = create_app(settings=kwargs.pop("settings", settings), **kwargs)

        async def _commerce_http() -> AsyncIterator[httpx.AsyncClient]:
            async with commerce.client() as http:
                yield http

        app.dependency_overrides[commerce_http] = _commerce_http
        return app

    return _build


@pytest_asyncio.fixture
async def app(app_factory) -> AsyncIterator[FastAPI]:
    app = app_factory()
    # httpx ASGITransport does not run lifespan; do it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_token(settings: Settings) -> Callable[..., str]:
    cfg = JwtConfig.from_settings(settings)

    def _make(subject: str, *, admin: bool = False, **kwargs: Any) -> str:
        return issue_token(cfg=cfg, subject=subject, admin=admin, **kwargs)

    return _make


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict[str, str]]:
    def _headers(subject: str, *, admin: bool = False) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(subject, admin=admin)}"}

    return _headers
