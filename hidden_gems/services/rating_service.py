# hidden_gems/services/rating_service.py
import logging
import math
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.errors import NotFound, ValidationError
from hidden_gems.models import Gem, Rating, User
from hidden_gems.services import notification_service
from hidden_gems.services.serializers import rating_dict

logger = logging.getLogger("hidden-gems.ratings")


def parse_score(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Score must be between 1 and 5")
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Score must be between 1 and 5")
    if not score.is_integer() or score < 1 or score > 5:
        raise ValidationError("Score must be between 1 and 5")
    return int(score)


async def _get_gem(db: AsyncSession, gem_id: str) -> Gem:
    gem = (await db.execute(select(Gem).where(Gem.id == gem_id))).scalar_one_or_none()
    if not gem:
        raise NotFound("Gem not found")
    return gem


async def _own_rating(db: AsyncSession, gem_id: str, user_id: str) -> Optional[Rating]:
    return (
        await db.execute(select(Rating).where(Rating.gem_id == gem_id, Rating.user_id == user_id))
    ).scalar_one_or_none()


async def recompute_aggregates(db: AsyncSession, gem: Gem) -> None:
    avg, count = (
        await db.execute(
            select(func.avg(Rating.score), func.count(Rating.id)).where(Rating.gem_id == gem.id)
        )
    ).one()
    gem.ratings_count = int(count or 0)
    gem.average_rating = round(float(avg), 2) if avg is not None else 0.0
    await db.commit()


async def list_ratings(db: AsyncSession, gem_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    total = (
        await db.execute(select(func.count(Rating.id)).where(Rating.gem_id == gem_id))
    ).scalar_one()
    rows = (
        await db.execute(
            select(Rating, User)
            .join(User, User.id == Rating.user_id, isouter=True)
            .where(Rating.gem_id == gem_id)
            .order_by(Rating.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).all()
    return {
        "data": [rating_dict(r, u) for r, u in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def create_rating(db: AsyncSession, gem_id: str, caller: User, score: Any, comment: Optional[str]) -> Rating:
    gem = await _get_gem(db, gem_id)
    if gem.status != "approved":
        raise ValidationError("Cannot rate a gem that is not approved")
    if await _own_rating(db, gem_id, caller.id):
        raise ValidationError("You have already rated this gem")
    value = parse_score(score)

    rating = Rating(
        id=str(uuid.uuid4()),
        gem_id=gem_id,
        user_id=caller.id,
        score=value,
        comment=comment,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(rating)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("You have already rated this gem")
    await recompute_aggregates(db, gem)
    logger.info(f"Rating {rating.id} ({value}) on gem {gem_id} by {caller.id}")

    if gem.owner_id != caller.id:
        await notification_service.notify(
            db,
            gem.owner_id,
            "new_review",
            "New Review",
            f'{caller.full_name or "Someone"} rated "{gem.name}" {value}/5.',
            {"gem_id": gem.id, "gem_name": gem.name, "review_id": rating.id, "rating": value,
             "action_url": f"/gems/{gem.slug}"},
        )
    return rating


async def update_rating(db: AsyncSession, gem_id: str, caller: User, score: Any = None, comment: Optional[str] = None) -> Rating:
    gem = await _get_gem(db, gem_id)
    rating = await _own_rating(db, gem_id, caller.id)
    if not rating:
        raise NotFound("Rating not found")

    if score is not None:
        rating.score = parse_score(score)
    if comment is not None:
        rating.comment = comment
    rating.updated_at = datetime.utcnow()
    await db.commit()
    await recompute_aggregates(db, gem)
    return rating


async def delete_rating(db: AsyncSession, gem_id: str, caller: User) -> None:
    gem = await _get_gem(db, gem_id)
    rating = await _own_rating(db, gem_id, caller.id)
    if not rating:
        raise NotFound("Rating not found")
    await db.delete(rating)
    await db.commit()
    await recompute_aggregates(db, gem)
