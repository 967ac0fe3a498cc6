# hidden_gems/services/favorite_service.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.errors import NotFound
from hidden_gems.models import Favorite, Gem, User
from hidden_gems.services import notification_service
from hidden_gems.services.gem_service import load_media
from hidden_gems.services.serializers import gem_dict, iso

logger = logging.getLogger("hidden-gems.favorites")


async def _find(db: AsyncSession, gem_id: str, user_id: str):
    return (
        await db.execute(select(Favorite.id).where(Favorite.gem_id == gem_id, Favorite.user_id == user_id))
    ).scalar_one_or_none()


async def save(db: AsyncSession, gem_id: str, caller: User) -> bool:
    """Save a gem for the caller. Returns False when it was already saved."""
    gem = (await db.execute(select(Gem).where(Gem.id == gem_id))).scalar_one_or_none()
    if not gem:
        raise NotFound("Gem not found")

    if await _find(db, gem_id, caller.id):
        return False

    db.add(Favorite(id=str(uuid.uuid4()), user_id=caller.id, gem_id=gem_id, created_at=datetime.utcnow()))
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent save got there first
        await db.rollback()
        return False

    if gem.owner_id != caller.id:
        await notification_service.notify(
            db,
            gem.owner_id,
            "gem_saved",
            "Someone Saved Your Gem",
            f'"{gem.name}" was added to a traveller\'s favorites.',
            {"gem_id": gem.id, "gem_name": gem.name},
        )
    return True


async def unsave(db: AsyncSession, gem_id: str, caller: User) -> None:
    await db.execute(delete(Favorite).where(Favorite.gem_id == gem_id, Favorite.user_id == caller.id))
    await db.commit()


async def list_favorites(db: AsyncSession, caller: User) -> List[Dict[str, Any]]:
    rows = (
        await db.execute(
            select(Favorite, Gem)
            .join(Gem, Gem.id == Favorite.gem_id)
            .where(Favorite.user_id == caller.id)
            .order_by(Favorite.created_at.desc())
        )
    ).all()
    media = await load_media(db, [g.id for _, g in rows])
    return [
        {"id": f.id, "created_at": iso(f.created_at), "gem": gem_dict(g, media.get(g.id, []))}
        for f, g in rows
    ]
