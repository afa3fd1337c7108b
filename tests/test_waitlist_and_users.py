from __future__ import annotations

import dataclasses
from types import MappingProxyType

import httpx
import pytest
from sqlalchemy import func, select

from knotulus_api.db.models import ShopCredential, User
from knotulus_api.policy import build_default_policy


@pytest.mark.asyncio
async def test_join_waitlist_creates_then_updates_same_record(app, client) -> None:
    r = await client.post("/api/join-waitlist", json={"name": "Ann", "email": "ann@example.com"})
    assert r.status_code == 200
    first = r.json()
    assert first["success"] is True
    assert "exists" not in first
    user_id = first["userId"]

    r = await client.post("/api/join-waitlist", json={"name": "Annie", "email": "ann@example.com"})
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "userId": user_id,
        "exists": True,
        "message": "Welcome again, Annie!",
    }

    r = await client.post("/api/join-waitlist", json={"name": "Anna", "email": "ann@example.com"})
    assert r.json()["userId"] == user_id
    assert r.json()["exists"] is True

    async with app.state.sessionmaker() as session:
        users = (await session.execute(select(User))).scalars().all()
    assert len(users) == 1
    assert users[0].name == "Anna"


@pytest.mark.asyncio
async def test_join_waitlist_requires_name_and_email(client) -> None:
    r = await client.post("/api/join-waitlist", json={"email": "x@example.com"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Missing or invalid required parameters: name"}

    r = await client.post("/api/join-waitlist", json={"name": "", "email": ""})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing or invalid required parameters: email, name"


@pytest.mark.asyncio
async def test_join_waitlist_is_rate_limited_per_client(client) -> None:
    for i in range(5):
        r = await client.post(
            "/api/join-waitlist", json={"name": f"n{i}", "email": f"{i}@example.com"}
        )
        assert r.status_code == 200
        assert r.headers["X-RateLimit-Limit"] == "5"
        assert r.headers["X-RateLimit-Remaining"] == str(4 - i)
        assert r.headers["X-RateLimit-Reset"].endswith("Z")

    r = await client.post("/api/join-waitlist", json={"name": "n6", "email": "6@example.com"})
    assert r.status_code == 429
    body = r.json()
    assert body["success"] is False
    assert body["retryAfter"] > 0
    assert int(r.headers["Retry-After"]) == body["retryAfter"]
    assert r.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_list_users_is_sanitized_newest_first(client, auth_headers) -> None:
    for name in ("first", "second"):
        await client.post("/api/join-waitlist", json={"name": name, "email": f"{name}@example.com"})

    r = await client.get("/api/list-users", headers=auth_headers("root", admin=True))
    assert r.status_code == 200
    users = r.json()["users"]
    assert [u["name"] for u in users] == ["second", "first"]
    # Admins keep admin-only fields.
    assert all("createdAt" in u for u in users)
    assert set(users[0]) == {"id", "name", "email", "createdAt"}


@pytest.mark.asyncio
async def test_delete_user_removes_user_and_credentials(app, client, auth_headers) -> None:
    r = await client.post("/api/join-waitlist", json={"name": "Cy", "email": "cy@example.com"})
    user_id = r.json()["userId"]
    admin = auth_headers("root", admin=True)
    r = await client.post(
        "/api/save-shop-credential",
        json={"shopName": "cy.myshopify.com", "accessToken": "shpat_cy", "userId": user_id},
        headers=admin,
    )
    assert r.status_code == 200

    r = await client.post("/api/delete-user", json={"userId": user_id}, headers=admin)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    async with app.state.sessionmaker() as session:
        assert await session.get(User, user_id) is None
        remaining = (
            await session.execute(select(func.count()).select_from(ShopCredential))
        ).scalar_one()
    assert remaining == 0

    # Unknown ids are not an error.
    r = await client.post("/api/delete-user", json={"userId": "does-not-exist"}, headers=admin)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_delete_user_requires_user_id(client, auth_headers) -> None:
    r = await client.post("/api/delete-user", json={}, headers=auth_headers("root", admin=True))
    assert r.status_code == 400
    assert r.json()["error"] == "Missing or invalid required parameters: userId"


@pytest.mark.asyncio
async def test_admin_rate_limit_bypass_only_in_dev(app_factory, settings, auth_headers) -> None:
    base = build_default_policy()
    quotas = {role: dict(table) for role, table in base.quotas.items()}
    quotas["admin"]["list-users"] = 1
    tight = dataclasses.replace(
        base, quotas=MappingProxyType({k: MappingProxyType(v) for k, v in quotas.items()})
    )
    admin = auth_headers("root", admin=True)

    async def _statuses(env: str, bypass: bool) -> list[int]:
        s = settings.model_copy(update={"env": env, "rate_limit_admin_bypass_in_dev": bypass})
        app = app_factory(settings=s, policy=tight)
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                return [(await c.get("/api/list-users", headers=admin)).status_code for _ in range(3)]

    assert await _statuses("test", True) == [200, 429, 429]
    assert await _statuses("dev", False) == [200, 429, 429]
    assert await _statuses("dev", True) == [200, 200, 200]


@pytest.mark.asyncio
async def test_bypassed_admins_still_see_quota_headers(app_factory, settings, auth_headers) -> None:
    s = settings.model_copy(update={"env": "dev", "rate_limit_admin_bypass_in_dev": True})
    app = app_factory(settings=s)
    admin = auth_headers("root", admin=True)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            for _ in range(2):
                r = await c.get("/api/list-users", headers=admin)
                assert r.status_code == 200
                assert r.headers["X-RateLimit-Limit"] == "100"
                assert r.headers["X-RateLimit-Remaining"] == "100"
