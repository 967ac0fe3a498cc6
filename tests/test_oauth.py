"""OAuth code exchange callback and the media upload settings."""

import httpx
import pytest
from sqlalchemy import select

from hidden_gems.core import config
from hidden_gems.models import User
from hidden_gems.services import oauth_service


@pytest.fixture
def provider(monkeypatch):
    """Stand-in identity provider; tests set ``userinfo`` or ``error``."""
    state = {"userinfo": {"email": "Amani@Example.com", "name": "Amani", "picture": "https://img/a.png"}, "error": None}

    async def exchange(code):
        if state["error"]:
            raise state["error"]
        return {"access_token": f"at-{code}"}

    async def userinfo(access_token):
        return state["userinfo"]

    monkeypatch.setattr(oauth_service, "exchange_code_for_token", exchange)
    monkeypatch.setattr(oauth_service, "get_userinfo", userinfo)
    return state


@pytest.mark.asyncio
async def test_callback_without_code(client):
    resp = await client.get("/auth/callback")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login?error=no_code"


@pytest.mark.asyncio
async def test_callback_creates_user_and_sets_cookie(client, db, provider):
    resp = await client.get("/auth/callback", params={"code": "abc", "redirect": "/dashboard"})

    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith("access_token=")
    assert "httponly" in cookie.lower()

    user = (await db.execute(select(User))).scalar_one()
    assert user.email == "amani@example.com"
    assert user.role == "visitor"
    assert user.avatar_url == "https://img/a.png"

    token = cookie.split(";")[0].split("=", 1)[1]
    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "amani@example.com"


@pytest.mark.asyncio
async def test_callback_reuses_existing_account(client, db, make_user, provider):
    existing = await make_user(role="owner", email="amani@example.com")

    await client.get("/auth/callback", params={"code": "abc"})

    users = (await db.execute(select(User))).scalars().all()
    assert [u.id for u in users] == [existing.id]
    assert users[0].role == "owner"


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [
    "https://evil.example",
    "//evil.example",
    "/\\evil.example",
    "/\t/evil.example",
    "dashboard",
])
async def test_callback_ignores_offsite_redirects(client, provider, target):
    resp = await client.get("/auth/callback", params={"code": "abc", "redirect": target})
    assert resp.headers["location"] == "/"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ValueError("bad_verification_code"),
    httpx.ConnectError("provider down"),
])
async def test_callback_exchange_failure(client, provider, error):
    provider["error"] = error
    resp = await client.get("/auth/callback", params={"code": "abc"})
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login?error=exchange_failed"


@pytest.mark.asyncio
async def test_callback_without_email(client, provider):
    provider["userinfo"] = {"name": "No Email"}
    resp = await client.get("/auth/callback", params={"code": "abc"})
    assert resp.headers["location"] == "/login?error=exchange_failed"


@pytest.mark.asyncio
async def test_upload_config(client, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "gems-cloud")
    user = await make_user(role="owner")

    resp = await client.get("/api/media/upload-config", headers=auth_headers(user))

    assert resp.json() == {
        "cloud_name": "gems-cloud",
        "upload_preset": config.CLOUDINARY_UPLOAD_PRESET,
        "upload_url": "https://api.cloudinary.com/v1_1/gems-cloud/auto/upload",
    }
    assert (await client.get("/api/media/upload-config")).status_code == 401
