# FILE: hidden_gems/api/deps.py

from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.config import AUTH_COOKIE_NAME
from hidden_gems.core.database import get_db
from hidden_gems.core.errors import Forbidden, Unauthorized
from hidden_gems.models.user import User
from hidden_gems.services.auth_service import decode_token

security = HTTPBearer(auto_error=False)


def identity_from_token(token: Optional[str]) -> dict:
    """Decode a session token into ``{id, email}``."""
    if not token or not token.strip():
        raise Unauthorized("Not authenticated")
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise Unauthorized("Invalid token payload")
    return {"id": user_id, "email": payload.get("email")}


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(AUTH_COOKIE_NAME)


async def user_from_token(db: AsyncSession, token: Optional[str]) -> User:
    identity = identity_from_token(token)
    user = (await db.execute(select(User).where(User.id == identity["id"]))).scalar_one_or_none()
    if not user:
        raise Unauthorized("User not found")
    return user


async def get_token_identity(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    return identity_from_token(_request_token(request, credentials))


async def get_current_user(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db),
) -> User:
    return await user_from_token(db, _request_token(request, credentials))


async def get_optional_user(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    token = _request_token(request, credentials)
    if not token:
        return None
    try:
        return await user_from_token(db, token)
    except Unauthorized:
        return None


async def require_admin(
        identity: dict = Depends(get_token_identity),
        db: AsyncSession = Depends(get_db),
) -> dict:
    """Admin gate: the caller's profile row must carry role ``admin``."""
    role = (await db.execute(select(User.role).where(User.id == identity["id"]))).scalar_one_or_none()
    if role != "admin":
        raise Forbidden("Forbidden: Admin access required")
    return {"id": identity["id"], "email": identity["email"]}
