# hidden_gems/schemas/auth.py
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    full_name: str
    # Self-registration never grants admin
    role: Literal["visitor", "owner"] = "visitor"
    country: Optional[str] = None


class UserLogin(BaseModel):
    email: str
    password: str


class ProfileResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    country: Optional[str] = None
    created_at: str


class TokenResponse(BaseModel):
    token: str
    user: ProfileResponse


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    country: Optional[str] = None
