# hidden_gems/services/traffic_service.py
"""Page-view tracking and the aggregates behind the traffic dashboard."""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core import config
from hidden_gems.core.errors import ValidationError
from hidden_gems.models import PageView
from hidden_gems.services.cache_service import TTLCache
from hidden_gems.services.serializers import iso

logger = logging.getLogger("hidden-gems.traffic")

CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"
RECENT_LIMIT = 100
TOP_PAGES = 10
CACHED_TYPES = ("hourly", "daily", "stats", "all")

cache = TTLCache(ttl=config.TRAFFIC_CACHE_TTL)


def _first_header(headers, *names: str) -> Optional[str]:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


async def record(db: AsyncSession, page: Optional[str], path: Optional[str], referrer: Optional[str], headers) -> PageView:
    if not page:
        raise ValidationError("Page is required")

    view = PageView(
        page=page,
        path=path,
        referrer=referrer,
        user_agent=headers.get("user-agent"),
        country=_first_header(headers, "cf-ipcountry", "x-vercel-ip-country"),
        city=_first_header(headers, "cf-ipcity", "x-vercel-ip-city"),
        created_at=datetime.utcnow(),
    )
    db.add(view)
    await db.commit()
    return view


async def _views_since(db: AsyncSession, since: datetime) -> List[datetime]:
    rows = await db.execute(select(PageView.created_at).where(PageView.created_at >= since))
    return list(rows.scalars().all())


async def hourly(db: AsyncSession, hours_back: int = 24, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = (now or datetime.utcnow()).replace(minute=0, second=0, microsecond=0)
    start = now - timedelta(hours=hours_back - 1)
    counts = Counter(
        ts.replace(minute=0, second=0, microsecond=0) for ts in await _views_since(db, start)
    )
    return [
        {"hour": iso(start + timedelta(hours=i)), "views": counts.get(start + timedelta(hours=i), 0)}
        for i in range(hours_back)
    ]


async def daily(db: AsyncSession, days_back: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    today = (now or datetime.utcnow()).date()
    start = today - timedelta(days=days_back - 1)
    since = datetime(start.year, start.month, start.day)
    counts = Counter(ts.date() for ts in await _views_since(db, since))
    return [
        {"day": (start + timedelta(days=i)).isoformat(), "views": counts.get(start + timedelta(days=i), 0)}
        for i in range(days_back)
    ]


async def stats(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    total = (await db.execute(select(func.count(PageView.id)))).scalar_one()
    today = (
        await db.execute(select(func.count(PageView.id)).where(PageView.created_at >= midnight))
    ).scalar_one()
    week = (
        await db.execute(select(func.count(PageView.id)).where(PageView.created_at >= now - timedelta(days=7)))
    ).scalar_one()
    unique_pages = (await db.execute(select(func.count(func.distinct(PageView.page))))).scalar_one()

    views = func.count(PageView.id).label("views")
    top = (
        await db.execute(
            select(PageView.page, views).group_by(PageView.page).order_by(views.desc()).limit(TOP_PAGES)
        )
    ).all()

    return {
        "total_views": total,
        "views_today": today,
        "views_this_week": week,
        "unique_pages": unique_pages,
        "top_pages": [{"page": page, "views": count} for page, count in top],
    }


async def recent(db: AsyncSession) -> List[Dict[str, Any]]:
    rows = await db.execute(select(PageView).order_by(PageView.created_at.desc()).limit(RECENT_LIMIT))
    return [
        {
            "id": v.id,
            "page": v.page,
            "path": v.path,
            "referrer": v.referrer,
            "user_agent": v.user_agent,
            "country": v.country,
            "city": v.city,
            "created_at": iso(v.created_at),
        }
        for v in rows.scalars().all()
    ]


async def query(db: AsyncSession, type: str = "hourly", range_: int = 24) -> Dict[str, Any]:
    """Dashboard query. Aggregates are cached per (type, range); ``recent`` never is."""
    if type not in CACHED_TYPES:
        return {"data": await recent(db)}

    key = (type, range_)
    cached = cache.get(key)
    if cached is not None:
        return cached

    if type == "all":
        result = {"hourly": await hourly(db, 24), "daily": await daily(db, 7)}
    elif type == "stats":
        result = {"data": await stats(db)}
    elif type == "hourly":
        result = {"data": await hourly(db, range_)}
    else:
        result = {"data": await daily(db, range_)}

    cache.set(key, result)
    return result
