"""Shared fixtures: a throwaway SQLite database, an ASGI client and row factories."""

import os
import tempfile
import uuid
from datetime import datetime, timedelta

_TMP = tempfile.mkdtemp(prefix="hidden-gems-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["JWT_SECRET"] = "test-secret"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402

from hidden_gems.core.database import Base, SessionLocal, engine  # noqa: E402
from hidden_gems.models import Gem, Notification, Payment, User  # noqa: E402
from hidden_gems.server import app  # noqa: E402
from hidden_gems.services import mpesa_service, traffic_service  # noqa: E402
from hidden_gems.services.auth_service import create_token, hash_password  # noqa: E402
from hidden_gems.services.realtime_service import hub  # noqa: E402


@pytest_asyncio.fixture(autouse=True)
async def tables():
    """Fresh schema and process-local state for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    hub.clear()
    traffic_service.cache.clear()
    mpesa_service.reset_token_cache()
    yield


@pytest_asyncio.fixture
async def db():
    async with SessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, user.email)}"}


@pytest.fixture
def auth_headers():
    return auth


@pytest.fixture
def make_user(db):
    async def _make(role: str = "visitor", email: str = None, full_name: str = "Test User", country: str = None) -> User:
        user = User(
            id=str(uuid.uuid4()),
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            password_hash=hash_password("secret123"),
            full_name=full_name,
            role=role,
            country=country,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_gem(db):
    async def _make(owner: User, name: str = None, status: str = "approved", tier: str = "standard", **fields) -> Gem:
        name = name or f"Gem {uuid.uuid4().hex[:6]}"
        gem = Gem(
            id=str(uuid.uuid4()),
            owner_id=owner.id,
            name=name,
            slug=fields.pop("slug", name.lower().replace(" ", "-")),
            description=fields.pop("description", "A lovely place"),
            category=fields.pop("category", "nature"),
            status=status,
            tier=tier,
            views_count=0,
            average_rating=fields.pop("average_rating", 0.0),
            ratings_count=0,
            created_at=fields.pop("created_at", datetime.utcnow()),
            updated_at=datetime.utcnow(),
            **fields,
        )
        db.add(gem)
        await db.commit()
        return gem

    return _make


@pytest.fixture
def make_payment(db):
    async def _make(gem: Gem, user: User, status: str = "pending", tier: str = "standard",
                    type: str = "new_listing", amount: int = 500, **fields) -> Payment:
        now = datetime.utcnow()
        payment = Payment(
            id=str(uuid.uuid4()),
            gem_id=gem.id,
            user_id=user.id,
            amount=amount,
            currency="KES",
            type=type,
            tier=tier,
            status=status,
            provider="mpesa",
            phone_number="254712345678",
            checkout_request_id=fields.pop("checkout_request_id", f"ws_CO_{uuid.uuid4().hex[:12]}"),
            merchant_request_id=fields.pop("merchant_request_id", f"MR_{uuid.uuid4().hex[:8]}"),
            term_start=now,
            term_end=now + timedelta(days=182),
            created_at=fields.pop("created_at", now),
            updated_at=now,
            **fields,
        )
        db.add(payment)
        await db.commit()
        return payment

    return _make


@pytest.fixture
def fetch():
    """Read a row through a new session so the result reflects committed state."""
    async def _fetch(model, row_id):
        async with SessionLocal() as session:
            return await session.get(model, row_id)

    return _fetch


@pytest.fixture
def notifications_of():
    async def _list(user_id: str):
        async with SessionLocal() as session:
            rows = await session.execute(
                select(Notification).where(Notification.user_id == user_id).order_by(Notification.created_at)
            )
            return list(rows.scalars().all())

    return _list
