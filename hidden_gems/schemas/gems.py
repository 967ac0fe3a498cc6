# hidden_gems/schemas/gems.py
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

GemCategory = Literal["eat_drink", "nature", "stay", "culture", "adventure", "entertainment"]
GemStatus = Literal["pending", "approved", "rejected", "expired"]
GemTier = Literal["standard", "featured"]

# Fields an owner may edit; any owner edit sends the gem back to review
OWNER_EDITABLE_FIELDS = (
    "name", "description", "category", "country", "city", "address",
    "latitude", "longitude", "phone", "email", "website", "instagram",
    "tiktok", "opening_hours", "price_range",
)
ADMIN_EDITABLE_FIELDS = OWNER_EDITABLE_FIELDS + (
    "status", "tier", "rejection_reason", "current_term_start", "current_term_end",
)


class GemMediaIn(BaseModel):
    url: str
    type: Literal["image", "video"] = "image"
    is_cover: bool = False


class GemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category: GemCategory
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    opening_hours: Optional[str] = None
    price_range: Optional[str] = None
    media: List[GemMediaIn] = Field(default_factory=list)


class GemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[GemCategory] = None
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    opening_hours: Optional[str] = None
    price_range: Optional[str] = None
    # Admin only; silently dropped for owners
    status: Optional[GemStatus] = None
    tier: Optional[GemTier] = None
    rejection_reason: Optional[str] = None
    current_term_start: Optional[datetime] = None
    current_term_end: Optional[datetime] = None


class GemFilters(BaseModel):
    category: Optional[GemCategory] = None
    country: Optional[str] = None
    city: Optional[str] = None
    min_rating: Optional[float] = None
    tier: Optional[GemTier] = None
    search: Optional[str] = None
