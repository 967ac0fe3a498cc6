# FILE: hidden_gems/api/ratings.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.models.user import User
from hidden_gems.schemas.ratings import RatingWrite
from hidden_gems.services import rating_service
from hidden_gems.services.serializers import rating_dict
from hidden_gems.api.deps import get_current_user

router = APIRouter(prefix="/api/ratings", tags=["ratings"])


@router.get("/{gem_id}")
async def list_ratings(
        gem_id: str,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        db: AsyncSession = Depends(get_db),
):
    return await rating_service.list_ratings(db, gem_id, page, limit)


@router.post("/{gem_id}", status_code=201)
async def create_rating(
        gem_id: str,
        data: RatingWrite,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    rating = await rating_service.create_rating(db, gem_id, user, data.score, data.comment)
    return {"data": rating_dict(rating, user)}


@router.put("/{gem_id}")
async def update_rating(
        gem_id: str,
        data: RatingWrite,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    rating = await rating_service.update_rating(db, gem_id, user, data.score, data.comment)
    return {"data": rating_dict(rating, user)}


@router.delete("/{gem_id}")
async def delete_rating(
        gem_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    await rating_service.delete_rating(db, gem_id, user)
    return {"success": True}
