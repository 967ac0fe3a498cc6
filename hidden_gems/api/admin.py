# FILE: hidden_gems/api/admin.py
"""Admin dashboard endpoints. Every route runs ``require_admin`` first."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.schemas.admin import AdminStats, PaymentStats, RejectRequest, RoleUpdate
from hidden_gems.services import admin_service, gem_service
from hidden_gems.services.serializers import gem_dict, profile_dict
from hidden_gems.api.deps import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStats)
async def stats(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await admin_service.dashboard_stats(db)


# ─────────────────────────────────────────────
# GEMS
# ─────────────────────────────────────────────

@router.get("/gems")
async def list_gems(
        status: Optional[str] = None,
        category: Optional[str] = None,
        country: Optional[str] = None,
        search: Optional[str] = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        admin=Depends(require_admin),
        db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_gems(db, status, category, country, search, page, limit)


@router.get("/gems/counts")
async def gem_counts(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await admin_service.gem_counts(db)


@router.get("/gems/countries")
async def gem_countries(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"data": await admin_service.gem_countries(db)}


@router.post("/gems/expire")
async def expire_listings(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await gem_service.expire_listings(db)


@router.post("/gems/{gem_id}/approve")
async def approve_gem(gem_id: str, admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    gem = await gem_service.approve_gem(db, gem_id)
    return {"success": True, "data": gem_dict(gem)}


@router.post("/gems/{gem_id}/reject")
async def reject_gem(
        gem_id: str,
        data: RejectRequest,
        admin=Depends(require_admin),
        db: AsyncSession = Depends(get_db),
):
    gem = await gem_service.reject_gem(db, gem_id, data.reason, data.notes)
    return {"success": True, "data": gem_dict(gem)}


# ─────────────────────────────────────────────
# USERS
# ─────────────────────────────────────────────

@router.get("/users")
async def list_users(
        role: Optional[str] = None,
        country: Optional[str] = None,
        search: Optional[str] = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        admin=Depends(require_admin),
        db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_users(db, role, country, search, page, limit)


@router.get("/users/countries")
async def user_countries(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"data": await admin_service.user_countries(db)}


@router.get("/users/{user_id}")
async def get_user(user_id: str, admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"data": await admin_service.get_user(db, user_id)}


@router.patch("/users/{user_id}/role")
async def update_role(
        user_id: str,
        data: RoleUpdate,
        admin=Depends(require_admin),
        db: AsyncSession = Depends(get_db),
):
    user = await admin_service.update_user_role(db, user_id, data.role)
    return {"success": True, "data": profile_dict(user)}


# ─────────────────────────────────────────────
# PAYMENTS
# ─────────────────────────────────────────────

@router.get("/payments")
async def list_payments(
        status: Optional[str] = None,
        dateRange: Optional[str] = None,
        provider: Optional[str] = None,
        search: Optional[str] = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        admin=Depends(require_admin),
        db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_payments(db, status, dateRange, provider, search, page, limit)


@router.get("/payments/stats", response_model=PaymentStats)
async def payment_stats(admin=Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await admin_service.payment_stats(db)
