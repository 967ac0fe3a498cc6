# FILE: hidden_gems/api/oauth.py
import logging

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core import config
from hidden_gems.core.database import get_db
from hidden_gems.services import oauth_service
from hidden_gems.services.auth_service import create_token

logger = logging.getLogger("hidden-gems.oauth")

router = APIRouter(tags=["auth"])


def _safe_redirect(target: str) -> str:
    # Only same-site paths; browsers read "//host" and "/\host" as another site
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return "/"
    # Tabs and newlines are stripped by browsers, so "/\t/host" is "//host"
    if any(c in target for c in "\t\r\n"):
        return "/"
    return target


@router.get("/auth/callback")
async def oauth_callback(
        code: str = Query(default=""),
        redirect: str = Query(default="/"),
        db: AsyncSession = Depends(get_db),
):
    if not code:
        return RedirectResponse(url="/login?error=no_code", status_code=302)

    try:
        user = await oauth_service.sign_in_with_code(db, code)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"OAuth exchange failed: {e}")
        return RedirectResponse(url="/login?error=exchange_failed", status_code=302)

    response = RedirectResponse(url=_safe_redirect(redirect), status_code=302)
    response.set_cookie(
        config.AUTH_COOKIE_NAME,
        create_token(user.id, user.email),
        max_age=config.JWT_EXPIRATION_HOURS * 3600,
        httponly=True,
        samesite="lax",
    )
    return response
