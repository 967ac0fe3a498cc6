# hidden_gems/models/payment.py
from datetime import datetime
from typing import Optional, Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, DateTime, JSON

from hidden_gems.core.database import Base

PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
PAYMENT_TYPES = ("new_listing", "renewal", "upgrade")


class Payment(Base):
    """One attempt to pay for a listing term."""
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # Payment records outlive a deleted listing
    gem_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("gems.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # Whole KES
    amount: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), default="KES")

    # Purpose: new_listing, renewal, upgrade
    type: Mapped[str] = mapped_column(String(20))
    # Tier being purchased: standard, featured
    tier: Mapped[str] = mapped_column(String(20), default="standard")

    # Status: pending, completed, failed, refunded
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    # Payment provider: mpesa
    provider: Mapped[str] = mapped_column(String(40), default="mpesa")
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Gateway handles for the in-flight charge
    checkout_request_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    merchant_request_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Receipt / provider reference
    provider_reference: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)
    mpesa_receipt_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    result_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    result_description: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    # Raw gateway metadata (amount, transaction date, payer phone)
    raw: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    term_start: Mapped[datetime] = mapped_column(DateTime)
    term_end: Mapped[datetime] = mapped_column(DateTime)

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
