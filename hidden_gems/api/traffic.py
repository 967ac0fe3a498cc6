# FILE: hidden_gems/api/traffic.py
from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.schemas.traffic import PageViewCreate
from hidden_gems.services import traffic_service

router = APIRouter(prefix="/api/traffic", tags=["traffic"])


@router.post("")
async def track_page_view(data: PageViewCreate, request: Request, db: AsyncSession = Depends(get_db)):
    await traffic_service.record(db, data.page, data.path, data.referrer, request.headers)
    return {"success": True}


@router.get("")
async def traffic(
        response: Response,
        type: str = Query(default="hourly"),
        range: int = Query(default=24, ge=1, le=24 * 365),
        db: AsyncSession = Depends(get_db),
):
    result = await traffic_service.query(db, type, range)
    if type in traffic_service.CACHED_TYPES:
        response.headers["Cache-Control"] = traffic_service.CACHE_CONTROL
    return result
