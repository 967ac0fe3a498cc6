"""Tests for registration, login, profiles and the admin gate."""

import httpx
import jwt
import pytest
from datetime import datetime, timedelta, timezone
from fastapi import Depends, FastAPI

from hidden_gems.api.deps import require_admin
from hidden_gems.core.config import JWT_ALGORITHM, JWT_SECRET
from hidden_gems.core.errors import register_error_handlers
from hidden_gems.models import User


@pytest.mark.asyncio
async def test_register_returns_token_and_profile(client):
    resp = await client.post("/api/auth/register", json={
        "email": "Amina@Example.com",
        "password": "secret123",
        "full_name": "Amina",
        "role": "owner",
        "country": "Kenya",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["token"]
    assert body["user"]["email"] == "amina@example.com"
    assert body["user"]["role"] == "owner"
    assert body["user"]["country"] == "Kenya"


@pytest.mark.asyncio
async def test_register_cannot_self_grant_admin(client):
    resp = await client.post("/api/auth/register", json={
        "email": "sneaky@example.com",
        "password": "secret123",
        "full_name": "Sneaky",
        "role": "admin",
    })
    assert resp.status_code == 400
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_register_duplicate_email(client, make_user):
    await make_user(email="taken@example.com")
    resp = await client.post("/api/auth/register", json={
        "email": "taken@example.com",
        "password": "secret123",
        "full_name": "Again",
    })
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email already registered"}


@pytest.mark.asyncio
async def test_login_and_me(client, make_user):
    await make_user(email="kofi@example.com", full_name="Kofi")
    resp = await client.post("/api/auth/login", json={"email": "kofi@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Kofi"


@pytest.mark.asyncio
async def test_login_wrong_password(client, make_user):
    await make_user(email="kofi@example.com")
    resp = await client.post("/api/auth/login", json={"email": "kofi@example.com", "password": "nope123"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_me_requires_token(client):
    resp = await client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Not authenticated"}


@pytest.mark.asyncio
async def test_expired_token_rejected(client, make_user):
    user = await make_user()
    token = jwt.encode(
        {"user_id": user.id, "email": user.email, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
    resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Token expired"}


@pytest.mark.asyncio
async def test_cookie_token_is_accepted(client, make_user, auth_headers):
    user = await make_user()
    token = auth_headers(user)["Authorization"].split(" ", 1)[1]
    resp = await client.get("/api/auth/me", headers={"Cookie": f"access_token={token}"})
    assert resp.status_code == 200
    assert resp.json()["id"] == user.id


@pytest.mark.asyncio
async def test_profile_is_null_when_signed_out(client):
    resp = await client.get("/api/auth/profile")
    assert resp.status_code == 200
    assert resp.json() == {"user": None}


@pytest.mark.asyncio
async def test_profile_with_bad_token_is_null(client):
    resp = await client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 200
    assert resp.json() == {"user": None}


@pytest.mark.asyncio
async def test_update_profile(client, make_user, auth_headers, fetch):
    user = await make_user()
    resp = await client.patch(
        "/api/auth/profile",
        json={"full_name": "New Name", "country": "Ghana"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "New Name"
    stored = await fetch(User, user.id)
    assert stored.country == "Ghana"


@pytest.mark.asyncio
async def test_become_owner(client, make_user, auth_headers, fetch):
    user = await make_user(role="visitor")
    resp = await client.post("/api/auth/become-owner", headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.json()["role"] == "owner"
    assert (await fetch(User, user.id)).role == "owner"


# ─────────────────────────────────────────────
# require_admin
# ─────────────────────────────────────────────

def _gated_app() -> FastAPI:
    gated = FastAPI()
    register_error_handlers(gated)

    @gated.post("/gated")
    async def gated_route(admin=Depends(require_admin)):
        return admin

    return gated


@pytest.mark.asyncio
async def test_require_admin_returns_identity(make_user, auth_headers):
    admin = await make_user(role="admin", email="boss@example.com")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=_gated_app()), base_url="http://test") as c:
        resp = await c.post("/gated", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json() == {"id": admin.id, "email": "boss@example.com"}


@pytest.mark.asyncio
async def test_require_admin_rejects_owner(make_user, auth_headers):
    owner = await make_user(role="owner")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=_gated_app()), base_url="http://test") as c:
        resp = await c.post("/gated", headers=auth_headers(owner), json={"role": "admin"})
    assert resp.status_code == 403
    assert resp.json() == {"error": "Forbidden: Admin access required"}


@pytest.mark.asyncio
async def test_require_admin_without_token():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=_gated_app()), base_url="http://test") as c:
        resp = await c.post("/gated")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_require_admin_for_deleted_profile(make_user, auth_headers, db):
    admin = await make_user(role="admin")
    headers = auth_headers(admin)
    await db.delete(admin)
    await db.commit()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=_gated_app()), base_url="http://test") as c:
        resp = await c.post("/gated", headers=headers)
    assert resp.status_code == 403
