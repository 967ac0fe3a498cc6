from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, ForeignKey, DateTime, UniqueConstraint

from hidden_gems.core.database import Base


class Rating(Base):
    """One score per (gem, user)."""
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "gem_id", name="uq_ratings_user_gem"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    gem_id: Mapped[str] = mapped_column(String(36), ForeignKey("gems.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    score: Mapped[int] = mapped_column(Integer)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
