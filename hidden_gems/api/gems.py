# FILE: hidden_gems/api/gems.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.models.user import User
from hidden_gems.schemas.gems import GemCategory, GemCreate, GemFilters, GemTier, GemUpdate
from hidden_gems.services import favorite_service, gem_service
from hidden_gems.services.serializers import gem_dict
from hidden_gems.api.deps import get_current_user, get_optional_user

router = APIRouter(prefix="/api", tags=["gems"])


@router.get("/gems")
async def list_gems(
        category: Optional[GemCategory] = None,
        country: Optional[str] = None,
        city: Optional[str] = None,
        min_rating: Optional[float] = None,
        tier: Optional[GemTier] = None,
        search: Optional[str] = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=12, ge=1, le=100),
        db: AsyncSession = Depends(get_db),
):
    filters = GemFilters(
        category=category,
        country=country,
        city=city,
        min_rating=min_rating,
        tier=tier,
        search=search,
    )
    return await gem_service.list_gems(db, filters, page, limit)


@router.post("/gems", status_code=201)
async def create_gem(
        data: GemCreate,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    gem = await gem_service.create_gem(db, user, data)
    media = await gem_service.load_media(db, [gem.id])
    return {"data": gem_dict(gem, media.get(gem.id, []))}


@router.get("/gems/nearby")
async def nearby_gems(
        lat: Optional[str] = None,
        lng: Optional[str] = None,
        radius: int = Query(default=50000, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        country: Optional[str] = None,
        city: Optional[str] = None,
        db: AsyncSession = Depends(get_db),
):
    return await gem_service.nearby(db, lat, lng, radius, limit, country, city)


@router.get("/gems/{id_or_slug}")
async def get_gem(
        id_or_slug: str,
        user: Optional[User] = Depends(get_optional_user),
        db: AsyncSession = Depends(get_db),
):
    return {"data": await gem_service.get_gem(db, id_or_slug, user)}


@router.patch("/gems/{gem_id}")
async def update_gem(
        gem_id: str,
        data: GemUpdate,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    gem = await gem_service.update_gem(db, gem_id, user, data)
    return {"data": gem_dict(gem)}


@router.delete("/gems/{gem_id}")
async def delete_gem(
        gem_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    await gem_service.delete_gem(db, gem_id, user)
    return {"success": True}


# ─────────────────────────────────────────────
# FAVORITES
# ─────────────────────────────────────────────

@router.post("/gems/{gem_id}/favorite")
async def save_gem(
        gem_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    created = await favorite_service.save(db, gem_id, user)
    return {"success": True, "saved": True, "created": created}


@router.delete("/gems/{gem_id}/favorite")
async def unsave_gem(
        gem_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    await favorite_service.unsave(db, gem_id, user)
    return {"success": True, "saved": False}


@router.get("/favorites")
async def list_favorites(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"data": await favorite_service.list_favorites(db, user)}
