# FILE: hidden_gems/api/auth.py
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import get_db
from hidden_gems.models.user import User
from hidden_gems.schemas.auth import UserCreate, UserLogin, TokenResponse, ProfileResponse, ProfileUpdate
from hidden_gems.services.auth_service import hash_password, verify_password, create_token
from hidden_gems.services.serializers import profile_dict
from hidden_gems.api.deps import get_current_user, get_optional_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)):
    email = data.email.strip().lower()
    existing = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        role=data.role,
        country=data.country,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(user)
    await db.commit()

    return TokenResponse(token=create_token(user.id, user.email), user=ProfileResponse(**profile_dict(user)))


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    email = data.email.strip().lower()
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return TokenResponse(token=create_token(user.id, user.email), user=ProfileResponse(**profile_dict(user)))


@router.get("/me", response_model=ProfileResponse)
async def auth_me(user: User = Depends(get_current_user)):
    return ProfileResponse(**profile_dict(user))


@router.get("/profile")
async def get_profile(user=Depends(get_optional_user)):
    # Signed-out callers get a null profile, never an error
    return {"user": profile_dict(user) if user else None}


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
        data: ProfileUpdate,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    await db.commit()
    return ProfileResponse(**profile_dict(user))


@router.post("/become-owner", response_model=ProfileResponse)
async def become_owner(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if user.role == "visitor":
        user.role = "owner"
        user.updated_at = datetime.utcnow()
        await db.commit()
    return ProfileResponse(**profile_dict(user))
