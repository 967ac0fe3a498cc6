from typing import Optional
from pydantic import BaseModel


class RoleUpdate(BaseModel):
    role: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str
    notes: Optional[str] = ""


class AdminStats(BaseModel):
    totalGems: int
    pendingReview: int
    activeGems: int
    revenueThisMonth: int


class PaymentStats(BaseModel):
    totalRevenue: int
    revenueThisMonth: int
    successfulCount: int
    failedCount: int
