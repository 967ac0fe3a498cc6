# =========================================================
# FILE: hidden_gems/services/gem_service.py
# =========================================================
"""
Listing repository: filtered CRUD over gems and their media, plus the
moderation transitions and the term-expiry sweep.
"""

import logging
import math
import re
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, delete, func, or_, and_, case, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core import config
from hidden_gems.core.errors import Forbidden, NotFound, ValidationError
from hidden_gems.models import Gem, GemMedia, Rating, Favorite, User
from hidden_gems.schemas.gems import (
    ADMIN_EDITABLE_FIELDS,
    OWNER_EDITABLE_FIELDS,
    GemCreate,
    GemFilters,
    GemUpdate,
)
from hidden_gems.services import notification_service
from hidden_gems.services.serializers import gem_dict, rating_dict, public_profile_dict

logger = logging.getLogger("hidden-gems.gems")

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# Columns that may be changed but never cleared
NON_NULL_FIELDS = ("name", "description", "category", "status", "tier")


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower())
    return slug.strip("-")


async def unique_slug(db: AsyncSession, name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationError("Name must contain letters or digits")
    taken = (await db.execute(select(Gem.id).where(Gem.slug == slug))).scalar_one_or_none()
    if taken:
        return f"{slug}-{int(time.time() * 1000)}"
    return slug


def visible_clause(now: Optional[datetime] = None):
    """SQL condition for publicly visible gems."""
    if config.FREE_TRIAL_ENABLED:
        return Gem.status == "approved"
    now = now or datetime.utcnow()
    return and_(Gem.status == "approved", Gem.current_term_end.is_not(None), Gem.current_term_end > now)


def is_publicly_visible(gem: Gem, now: Optional[datetime] = None) -> bool:
    if gem.status != "approved":
        return False
    if config.FREE_TRIAL_ENABLED:
        return True
    now = now or datetime.utcnow()
    return gem.current_term_end is not None and gem.current_term_end > now


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == "admin"


async def load_media(db: AsyncSession, gem_ids: List[str]) -> Dict[str, List[GemMedia]]:
    by_gem: Dict[str, List[GemMedia]] = {gid: [] for gid in gem_ids}
    if not gem_ids:
        return by_gem
    rows = await db.execute(
        select(GemMedia)
        .where(GemMedia.gem_id.in_(gem_ids))
        .order_by(GemMedia.order.asc())
    )
    for m in rows.scalars().all():
        by_gem.setdefault(m.gem_id, []).append(m)
    return by_gem


async def _get_gem_or_404(db: AsyncSession, gem_id: str) -> Gem:
    gem = (await db.execute(select(Gem).where(Gem.id == gem_id))).scalar_one_or_none()
    if not gem:
        raise NotFound("Gem not found")
    return gem


def _paginate(page: int, limit: int) -> Tuple[int, int, int]:
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 12), 1), 100)
    return page, limit, (page - 1) * limit


# ─────────────────────────────────────────────
# READ
# ─────────────────────────────────────────────

async def list_gems(db: AsyncSession, filters: GemFilters, page: int = 1, limit: int = 12) -> Dict[str, Any]:
    page, limit, offset = _paginate(page, limit)

    query = select(Gem).where(visible_clause())

    if filters.category:
        query = query.where(Gem.category == filters.category)
    if filters.country:
        query = query.where(Gem.country == filters.country)
    if filters.city:
        query = query.where(Gem.city.ilike(f"%{filters.city}%"))
    if filters.min_rating:
        query = query.where(Gem.average_rating >= filters.min_rating)
    if filters.tier:
        query = query.where(Gem.tier == filters.tier)
    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(or_(Gem.name.ilike(term), Gem.description.ilike(term), Gem.city.ilike(term)))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

    featured_first = case((Gem.tier == "featured", 0), else_=1)
    rows = (
        await db.execute(
            query.order_by(featured_first, Gem.created_at.desc()).offset(offset).limit(limit)
        )
    ).scalars().all()

    media = await load_media(db, [g.id for g in rows])
    return {
        "data": [gem_dict(g, media.get(g.id, [])) for g in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def get_gem(db: AsyncSession, id_or_slug: str, caller: Optional[User] = None) -> Dict[str, Any]:
    column = Gem.id if UUID_RE.match(id_or_slug) else Gem.slug
    gem = (await db.execute(select(Gem).where(column == id_or_slug))).scalar_one_or_none()
    if not gem:
        raise NotFound("Gem not found")

    if not is_publicly_visible(gem):
        # Hidden gems look missing to everyone but their owner and admins
        if caller is None or (gem.owner_id != caller.id and not is_admin(caller)):
            raise NotFound("Gem not found")

    gem.views_count = (gem.views_count or 0) + 1
    await db.commit()

    media = await load_media(db, [gem.id])
    owner = (await db.execute(select(User).where(User.id == gem.owner_id))).scalar_one_or_none()
    ratings = (
        await db.execute(
            select(Rating, User)
            .join(User, User.id == Rating.user_id, isouter=True)
            .where(Rating.gem_id == gem.id)
            .order_by(Rating.created_at.desc())
        )
    ).all()

    data = gem_dict(gem, media.get(gem.id, []))
    data["owner"] = public_profile_dict(owner)
    data["ratings"] = [rating_dict(r, u) for r, u in ratings]
    return data


# ─────────────────────────────────────────────
# WRITE
# ─────────────────────────────────────────────

async def create_gem(db: AsyncSession, caller: User, data: GemCreate) -> Gem:
    if caller.role not in ("owner", "admin"):
        raise Forbidden("Only gem owners can create listings")

    gem = Gem(
        id=str(uuid.uuid4()),
        owner_id=caller.id,
        name=data.name,
        slug=await unique_slug(db, data.name),
        description=data.description,
        category=data.category,
        country=data.country,
        city=data.city,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
        phone=data.phone,
        email=data.email,
        website=data.website,
        instagram=data.instagram,
        tiktok=data.tiktok,
        opening_hours=data.opening_hours,
        price_range=data.price_range,
        status="pending",
        tier="standard",
        views_count=0,
        average_rating=0.0,
        ratings_count=0,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(gem)

    has_cover = any(m.is_cover for m in data.media)
    for index, m in enumerate(data.media):
        db.add(GemMedia(
            id=str(uuid.uuid4()),
            gem_id=gem.id,
            url=m.url,
            type=m.type,
            is_cover=m.is_cover or (index == 0 and not has_cover),
            order=index,
        ))

    await db.commit()
    logger.info(f"Gem {gem.id} ({gem.slug}) created by {caller.id}")

    await notification_service.notify_admins(
        db,
        "new_gem_pending",
        "New Gem Awaiting Review",
        f'"{gem.name}" was submitted and needs verification.',
        {"gem_id": gem.id, "gem_name": gem.name, "action_url": f"/admin/gems/{gem.id}"},
    )
    return gem


async def update_gem(db: AsyncSession, gem_id: str, caller: User, data: GemUpdate) -> Gem:
    gem = await _get_gem_or_404(db, gem_id)

    admin = is_admin(caller)
    if gem.owner_id != caller.id and not admin:
        raise Forbidden("Forbidden")

    allowed = ADMIN_EDITABLE_FIELDS if admin else OWNER_EDITABLE_FIELDS
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in allowed}
    cleared = [f for f in NON_NULL_FIELDS if f in changes and changes[f] is None]
    if cleared:
        raise ValidationError(f"{cleared[0]} cannot be null")
    previous_status = gem.status

    for field, value in changes.items():
        setattr(gem, field, value)

    owner_edit = not admin and bool(changes)
    if owner_edit:
        gem.status = "pending"
    gem.updated_at = datetime.utcnow()
    await db.commit()

    if admin and changes.get("status") and changes["status"] != previous_status:
        await _on_status_change(db, gem)
    if owner_edit:
        await _notify_savers(db, gem)
    return gem


async def delete_gem(db: AsyncSession, gem_id: str, caller: User) -> None:
    gem = await _get_gem_or_404(db, gem_id)
    if gem.owner_id != caller.id and not is_admin(caller):
        raise Forbidden("Forbidden")

    await db.execute(delete(GemMedia).where(GemMedia.gem_id == gem_id))
    await db.execute(delete(Rating).where(Rating.gem_id == gem_id))
    await db.execute(delete(Favorite).where(Favorite.gem_id == gem_id))
    await db.delete(gem)
    await db.commit()
    logger.info(f"Gem {gem_id} deleted by {caller.id}")


# ─────────────────────────────────────────────
# MODERATION
# ─────────────────────────────────────────────

def _start_free_trial(gem: Gem, now: datetime) -> None:
    if not config.FREE_TRIAL_ENABLED:
        return
    if gem.current_term_end is not None and gem.current_term_end > now:
        return
    gem.current_term_start = now
    gem.current_term_end = now + timedelta(days=config.FREE_TRIAL_DAYS)


async def _on_status_change(db: AsyncSession, gem: Gem) -> None:
    if gem.status == "approved":
        gem.rejection_reason = None
        _start_free_trial(gem, datetime.utcnow())
        await db.commit()
        await notification_service.notify(
            db,
            gem.owner_id,
            "gem_approved",
            "Your Gem is Approved!",
            f'Great news! "{gem.name}" has been approved. Complete payment to make it visible to the public.',
            {"gem_id": gem.id, "gem_name": gem.name, "action_url": f"/gems/{gem.id}/pay"},
        )
    elif gem.status == "rejected":
        await notification_service.notify(
            db,
            gem.owner_id,
            "gem_rejected",
            "Gem Not Approved",
            f'Unfortunately, "{gem.name}" was not approved. Reason: {gem.rejection_reason or "not specified"}',
            {"gem_id": gem.id, "gem_name": gem.name, "rejection_reason": gem.rejection_reason},
        )


async def approve_gem(db: AsyncSession, gem_id: str) -> Gem:
    gem = await _get_gem_or_404(db, gem_id)
    gem.status = "approved"
    gem.updated_at = datetime.utcnow()
    await db.commit()
    await _on_status_change(db, gem)
    logger.info(f"Gem {gem_id} approved")
    return gem


async def reject_gem(db: AsyncSession, gem_id: str, reason: str, notes: Optional[str] = None) -> Gem:
    if not (reason or "").strip():
        raise ValidationError("Rejection reason is required")
    gem = await _get_gem_or_404(db, gem_id)
    gem.status = "rejected"
    gem.rejection_reason = f"{reason}: {notes}" if notes else reason
    gem.updated_at = datetime.utcnow()
    await db.commit()
    await _on_status_change(db, gem)
    logger.info(f"Gem {gem_id} rejected")
    return gem


async def _notify_savers(db: AsyncSession, gem: Gem) -> None:
    saver_ids = (
        await db.execute(
            select(Favorite.user_id).where(Favorite.gem_id == gem.id, Favorite.user_id != gem.owner_id)
        )
    ).scalars().all()
    for user_id in set(saver_ids):
        await notification_service.notify(
            db,
            user_id,
            "saved_gem_updated",
            "A Saved Gem Was Updated",
            f'"{gem.name}" has new details.',
            {"gem_id": gem.id, "gem_name": gem.name},
        )


async def expire_listings(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """Expire approved gems whose term elapsed and warn owners of terms ending soon."""
    now = now or datetime.utcnow()

    elapsed = (
        await db.execute(
            select(Gem).where(
                Gem.status == "approved",
                Gem.current_term_end.is_not(None),
                Gem.current_term_end <= now,
            )
        )
    ).scalars().all()
    for gem in elapsed:
        gem.status = "expired"
        gem.updated_at = now
    await db.commit()

    horizon = now + timedelta(days=config.EXPIRY_WARNING_DAYS)
    ending = (
        await db.execute(
            select(Gem).where(
                Gem.status == "approved",
                Gem.current_term_end > now,
                Gem.current_term_end <= horizon,
            )
        )
    ).scalars().all()
    for gem in ending:
        days_left = max((gem.current_term_end - now).days, 0)
        await notification_service.notify(
            db,
            gem.owner_id,
            "listing_expiring",
            "Listing Expiring Soon",
            f'"{gem.name}" expires in {days_left} day(s). Renew to stay visible.',
            {"gem_id": gem.id, "gem_name": gem.name, "action_url": f"/gems/{gem.id}/pay"},
        )

    logger.info(f"Expiry sweep: {len(elapsed)} expired, {len(ending)} expiring")
    return {"expired": len(elapsed), "expiring": len(ending)}


# ─────────────────────────────────────────────
# NEARBY
# ─────────────────────────────────────────────

async def _query_nearby_function(db: AsyncSession, lat: float, lng: float, radius: int) -> List[Tuple[str, float]]:
    rows = await db.execute(
        text("SELECT id, distance_meters FROM nearby_gems(:user_lat, :user_lng, :radius_meters)"),
        {"user_lat": lat, "user_lng": lng, "radius_meters": radius},
    )
    return [(str(r[0]), float(r[1])) for r in rows.all()]


async def nearby(
    db: AsyncSession,
    lat: Optional[str],
    lng: Optional[str],
    radius: int = 50000,
    limit: int = 10,
    country: Optional[str] = None,
    city: Optional[str] = None,
) -> Dict[str, Any]:
    if lat in (None, "") or lng in (None, ""):
        raise ValidationError("Latitude and longitude are required")
    try:
        latitude = float(lat)
        longitude = float(lng)
    except (TypeError, ValueError):
        raise ValidationError("Invalid coordinates")
    if math.isnan(latitude) or math.isnan(longitude):
        raise ValidationError("Invalid coordinates")

    try:
        found = await _query_nearby_function(db, latitude, longitude, radius)
    except DBAPIError as e:
        logger.warning(f"nearby_gems() unavailable, falling back to country/city: {e}")
        await db.rollback()
        return await _nearby_fallback(db, limit, country, city)

    if not found:
        return {"data": [], "total": 0, "message": "No gems found nearby"}

    distances = dict(found)
    ids = [gid for gid, _ in found[:limit]]
    gems = (await db.execute(select(Gem).where(Gem.id.in_(ids), visible_clause()))).scalars().all()
    media = await load_media(db, [g.id for g in gems])

    data = []
    for g in gems:
        meters = distances.get(g.id, 0.0)
        item = gem_dict(g, media.get(g.id, []))
        item["distance_meters"] = meters
        item["distance_km"] = f"{meters / 1000:.1f}"
        data.append(item)
    data.sort(key=lambda item: item["distance_meters"])

    return {"data": data, "total": len(data)}


async def _nearby_fallback(db: AsyncSession, limit: int, country: Optional[str], city: Optional[str]) -> Dict[str, Any]:
    query = select(Gem).where(visible_clause())
    if country:
        query = query.where(Gem.country == country)
    if city:
        query = query.where(Gem.city.ilike(f"%{city}%"))
    gems = (
        await db.execute(query.order_by(Gem.average_rating.desc()).limit(limit))
    ).scalars().all()
    media = await load_media(db, [g.id for g in gems])
    return {
        "data": [gem_dict(g, media.get(g.id, [])) for g in gems],
        "total": len(gems),
        "fallback": True,
    }
