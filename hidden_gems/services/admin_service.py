# FILE: hidden_gems/services/admin_service.py
"""Read models for the admin dashboard: gems, users, payments and revenue."""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.errors import NotFound, ValidationError
from hidden_gems.models import Gem, Payment, User
from hidden_gems.models.gem import GEM_STATUSES
from hidden_gems.models.user import USER_ROLES
from hidden_gems.services.gem_service import load_media
from hidden_gems.services.serializers import gem_dict, payment_dict, profile_dict

logger = logging.getLogger("hidden-gems.admin")


def _page(page: int, limit: int):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    return page, limit, (page - 1) * limit


def _start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def _count(db: AsyncSession, query) -> int:
    return (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()


async def _revenue_since(db: AsyncSession, since: Optional[datetime] = None) -> int:
    query = select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == "completed")
    if since is not None:
        query = query.where(Payment.created_at >= since)
    return int((await db.execute(query)).scalar_one() or 0)


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────

async def dashboard_stats(db: AsyncSession) -> Dict[str, int]:
    total = (await db.execute(select(func.count(Gem.id)))).scalar_one()
    pending = (await db.execute(select(func.count(Gem.id)).where(Gem.status == "pending"))).scalar_one()
    active = (await db.execute(select(func.count(Gem.id)).where(Gem.status == "approved"))).scalar_one()
    return {
        "totalGems": total,
        "pendingReview": pending,
        "activeGems": active,
        "revenueThisMonth": await _revenue_since(db, _start_of_month(datetime.utcnow())),
    }


# ─────────────────────────────────────────────
# GEMS
# ─────────────────────────────────────────────

async def list_gems(
    db: AsyncSession,
    status: Optional[str] = None,
    category: Optional[str] = None,
    country: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    page, limit, offset = _page(page, limit)

    query = select(Gem)
    if status and status != "all":
        query = query.where(Gem.status == status)
    if category and category != "all":
        query = query.where(Gem.category == category)
    if country and country != "all":
        query = query.where(Gem.country == country)
    if search:
        query = query.where(Gem.name.ilike(f"%{search}%"))

    total = await _count(db, query)
    gems = (
        await db.execute(query.order_by(Gem.created_at.desc()).offset(offset).limit(limit))
    ).scalars().all()

    media = await load_media(db, [g.id for g in gems])
    owner_ids = {g.owner_id for g in gems}
    owners = {}
    if owner_ids:
        rows = await db.execute(select(User).where(User.id.in_(owner_ids)))
        owners = {u.id: u for u in rows.scalars().all()}

    data = []
    for g in gems:
        item = gem_dict(g, media.get(g.id, []))
        owner = owners.get(g.owner_id)
        item["owner"] = profile_dict(owner) if owner else None
        data.append(item)

    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def gem_counts(db: AsyncSession) -> Dict[str, int]:
    counts = {"all": 0}
    counts.update({status: 0 for status in GEM_STATUSES})
    rows = await db.execute(select(Gem.status, func.count(Gem.id)).group_by(Gem.status))
    for status, n in rows.all():
        if status in counts:
            counts[status] = n
        counts["all"] += n
    return counts


async def gem_countries(db: AsyncSession) -> List[str]:
    rows = await db.execute(select(Gem.country).where(Gem.country.is_not(None)).distinct())
    return sorted(c for c in rows.scalars().all() if c)


# ─────────────────────────────────────────────
# USERS
# ─────────────────────────────────────────────

async def list_users(
    db: AsyncSession,
    role: Optional[str] = None,
    country: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    page, limit, offset = _page(page, limit)

    query = select(User)
    if role and role != "all":
        query = query.where(User.role == role)
    if country:
        query = query.where(User.country == country)
    if search:
        term = f"%{search}%"
        query = query.where(or_(User.full_name.ilike(term), User.email.ilike(term)))

    total = await _count(db, query)
    users = (
        await db.execute(query.order_by(User.created_at.desc()).offset(offset).limit(limit))
    ).scalars().all()

    gems_count: Dict[str, int] = {}
    if users:
        rows = await db.execute(
            select(Gem.owner_id, func.count(Gem.id))
            .where(Gem.owner_id.in_([u.id for u in users]))
            .group_by(Gem.owner_id)
        )
        gems_count = dict(rows.all())

    return {
        "data": [dict(profile_dict(u), gems_count=gems_count.get(u.id, 0)) for u in users],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def get_user(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise NotFound("User not found")

    gems = (
        await db.execute(select(Gem).where(Gem.owner_id == user_id).order_by(Gem.created_at.desc()))
    ).scalars().all()
    media = await load_media(db, [g.id for g in gems])

    payments = (
        await db.execute(
            select(Payment, Gem.name)
            .join(Gem, Gem.id == Payment.gem_id, isouter=True)
            .where(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
        )
    ).all()

    data = profile_dict(user)
    data["gems_count"] = len(gems)
    data["gems"] = [gem_dict(g, media.get(g.id, [])) for g in gems]
    data["payments"] = [
        dict(payment_dict(p), gem={"name": name} if name else None) for p, name in payments
    ]
    return data


async def update_user_role(db: AsyncSession, user_id: str, role: Optional[str]) -> User:
    if role not in USER_ROLES:
        raise ValidationError("Invalid role provided")
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise NotFound("User not found")
    user.role = role
    user.updated_at = datetime.utcnow()
    await db.commit()
    logger.info(f"User {user_id} role set to {role}")
    return user


async def user_countries(db: AsyncSession) -> List[str]:
    rows = await db.execute(select(User.country).where(User.country.is_not(None)).distinct())
    return sorted(c for c in rows.scalars().all() if c)


# ─────────────────────────────────────────────
# PAYMENTS
# ─────────────────────────────────────────────

def _range_start(date_range: Optional[str], now: datetime) -> Optional[datetime]:
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return _start_of_month(now)
    if date_range == "3months":
        month_index = now.month - 1 - 3
        return _start_of_month(now).replace(year=now.year + month_index // 12, month=month_index % 12 + 1)
    return None


async def list_payments(
    db: AsyncSession,
    status: Optional[str] = None,
    date_range: Optional[str] = None,
    provider: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    page, limit, offset = _page(page, limit)

    query = select(Payment)
    if status and status != "all":
        query = query.where(Payment.status == status)
    since = _range_start(date_range, datetime.utcnow())
    if since is not None:
        query = query.where(Payment.created_at >= since)
    if provider and provider != "all":
        query = query.where(Payment.provider == provider)
    if search:
        query = query.where(Payment.provider_reference.ilike(f"%{search}%"))

    total = await _count(db, query)
    payments = (
        await db.execute(query.order_by(Payment.created_at.desc()).offset(offset).limit(limit))
    ).scalars().all()

    gem_ids = {p.gem_id for p in payments if p.gem_id}
    user_ids = {p.user_id for p in payments}
    gems = {}
    users = {}
    if gem_ids:
        gems = {g.id: g for g in (await db.execute(select(Gem).where(Gem.id.in_(gem_ids)))).scalars().all()}
    if user_ids:
        users = {u.id: u for u in (await db.execute(select(User).where(User.id.in_(user_ids)))).scalars().all()}

    data = []
    for p in payments:
        item = payment_dict(p)
        gem = gems.get(p.gem_id)
        user = users.get(p.user_id)
        item["gem"] = {"id": gem.id, "name": gem.name, "slug": gem.slug} if gem else None
        item["user"] = {"id": user.id, "full_name": user.full_name, "email": user.email} if user else None
        data.append(item)

    return {
        "payments": data,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }


async def payment_stats(db: AsyncSession) -> Dict[str, int]:
    successful = (
        await db.execute(select(func.count(Payment.id)).where(Payment.status == "completed"))
    ).scalar_one()
    failed = (
        await db.execute(select(func.count(Payment.id)).where(Payment.status == "failed"))
    ).scalar_one()
    return {
        "totalRevenue": await _revenue_since(db),
        "revenueThisMonth": await _revenue_since(db, _start_of_month(datetime.utcnow())),
        "successfulCount": successful,
        "failedCount": failed,
    }
