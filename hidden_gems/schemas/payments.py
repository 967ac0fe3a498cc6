# hidden_gems/schemas/payments.py
from typing import Optional
from pydantic import BaseModel


class PaymentInitiateRequest(BaseModel):
    # All optional: missing fields are reported by the payment service
    gemId: Optional[str] = None
    tier: Optional[str] = None
    type: Optional[str] = None
    phoneNumber: Optional[str] = None


class PaymentInitiateResponse(BaseModel):
    success: bool
    paymentId: str
    checkoutRequestId: Optional[str] = None
    message: str


class PaymentPollResponse(BaseModel):
    status: str
    receipt: Optional[str] = None
    error: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    id: str
    status: str
    provider: str
    receiptNumber: Optional[str] = None
    message: Optional[str] = None
    createdAt: str
