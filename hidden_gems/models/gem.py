from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Float, Boolean, ForeignKey, DateTime

from hidden_gems.core.database import Base

GEM_STATUSES = ("pending", "approved", "rejected", "expired")
GEM_TIERS = ("standard", "featured")


class Gem(Base):
    """A point-of-interest listing."""
    __tablename__ = "gems"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(220), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, default="")

    # eat_drink, nature, stay, culture, adventure, entertainment
    category: Mapped[str] = mapped_column(String(30), index=True)

    country: Mapped[Optional[str]] = mapped_column(String(80), nullable=True, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    instagram: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    tiktok: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    opening_hours: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    price_range: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    # pending -> approved | rejected; approved -> expired
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    # standard, featured
    tier: Mapped[str] = mapped_column(String(20), default="standard")
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    views_count: Mapped[int] = mapped_column(Integer, default=0)
    average_rating: Mapped[float] = mapped_column(Float, default=0.0)
    ratings_count: Mapped[int] = mapped_column(Integer, default=0)

    current_term_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    current_term_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class GemMedia(Base):
    __tablename__ = "gem_media"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    gem_id: Mapped[str] = mapped_column(String(36), ForeignKey("gems.id", ondelete="CASCADE"), index=True)
    url: Mapped[str] = mapped_column(String(500))
    # image, video
    type: Mapped[str] = mapped_column(String(10), default="image")
    is_cover: Mapped[bool] = mapped_column(Boolean, default=False)
    order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
