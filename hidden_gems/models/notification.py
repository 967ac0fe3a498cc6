from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Boolean, ForeignKey, DateTime, JSON

from hidden_gems.core.database import Base

NOTIFICATION_TYPES = (
    "new_review",         # owner: someone reviewed their gem
    "gem_approved",       # owner: gem was approved
    "gem_rejected",       # owner: gem was rejected
    "payment_success",    # owner: payment successful
    "payment_failed",     # owner: payment failed
    "listing_expiring",   # owner: listing expiring soon
    "gem_saved",          # owner: someone saved their gem
    "saved_gem_updated",  # visitor: a saved gem was updated
    "new_gem_pending",    # admin: new gem needs verification
    "new_payment",        # admin: new payment received
)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(30))
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    # gem_id, gem_name, payment_id, review_id, rating, action_url
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
