# FILE: hidden_gems/api/payments.py
"""M-Pesa payment endpoints: initiate, gateway callback and status."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.models.user import User
from hidden_gems.schemas.payments import (
    PaymentInitiateRequest,
    PaymentInitiateResponse,
    PaymentPollResponse,
    PaymentStatusResponse,
)
from hidden_gems.services import payment_service
from hidden_gems.api.deps import get_current_user

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/initiate", response_model=PaymentInitiateResponse)
async def initiate_payment(
        data: PaymentInitiateRequest,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    return await payment_service.initiate(db, user, data.gemId, data.tier, data.type, data.phoneNumber)


@router.post("/mpesa/callback")
async def mpesa_callback(request: Request, db: AsyncSession = Depends(get_db)):
    """Gateway webhook. Anything structurally valid is acknowledged."""
    payload = await request.body()
    status_code, body = await payment_service.handle_callback(db, payload)
    return JSONResponse(status_code=status_code, content=body)


@router.get("/mpesa/callback")
async def mpesa_callback_check():
    return {"status": "OK"}


@router.get("/{payment_id}/status", response_model=PaymentPollResponse, response_model_exclude_none=True)
async def poll_payment(
        payment_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    return await payment_service.poll_status(db, payment_id, user)


@router.get("/status/{payment_id}", response_model=PaymentStatusResponse)
async def payment_status(
        payment_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    return await payment_service.get_payment(db, payment_id, user)
