# FILE: hidden_gems/services/oauth_service.py
import logging
import uuid
from datetime import datetime
from typing import Dict

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core import config
from hidden_gems.models import User

logger = logging.getLogger("hidden-gems.oauth")


async def exchange_code_for_token(code: str) -> Dict:
    """Exchange an authorization code for provider tokens."""
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            config.OAUTH_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "client_id": config.OAUTH_CLIENT_ID,
                "client_secret": config.OAUTH_CLIENT_SECRET,
                "redirect_uri": config.OAUTH_REDIRECT_URI,
                "code": code,
            },
            headers={"Accept": "application/json"},
            timeout=30,
        )
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise ValueError(data.get("error_description", data["error"]))
        return data


async def get_userinfo(access_token: str) -> Dict:
    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.OAUTH_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=30,
        )
        resp.raise_for_status()
        return resp.json()


async def find_or_create_user(db: AsyncSession, info: Dict) -> User:
    email = (info.get("email") or "").strip().lower()
    if not email:
        raise ValueError("Identity provider returned no email")

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user:
        return user

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=None,
        full_name=info.get("name") or info.get("full_name") or email.split("@")[0],
        avatar_url=info.get("picture") or info.get("avatar_url"),
        role="visitor",
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(user)
    await db.commit()
    logger.info(f"Created user {user.id} from OAuth sign-in")
    return user


async def sign_in_with_code(db: AsyncSession, code: str) -> User:
    tokens = await exchange_code_for_token(code)
    access_token = tokens.get("access_token")
    if not access_token:
        raise ValueError("Identity provider returned no access_token")
    info = await get_userinfo(access_token)
    return await find_or_create_user(db, info)
