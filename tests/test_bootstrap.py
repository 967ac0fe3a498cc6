import pytest

from hidden_gems.models import User
from hidden_gems.services.auth_service import verify_password
from hidden_gems.services.bootstrap_service import promote_admin


@pytest.mark.asyncio
async def test_promote_existing_user(db, make_user, fetch):
    user = await make_user(role="owner", email="ops@example.com")

    await promote_admin(db, " OPS@example.com ")

    stored = await fetch(User, user.id)
    assert stored.role == "admin"
    assert verify_password("secret123", stored.password_hash)


@pytest.mark.asyncio
async def test_promote_creates_missing_account(db, fetch):
    user = await promote_admin(db, "new-admin@example.com", password="s3cret!!")

    stored = await fetch(User, user.id)
    assert stored.role == "admin"
    assert stored.full_name == "new-admin"
    assert verify_password("s3cret!!", stored.password_hash)


@pytest.mark.asyncio
async def test_promoted_admin_can_use_dashboard(client, db, auth_headers):
    admin = await promote_admin(db, "boss@example.com", full_name="Boss")
    resp = await client.get("/api/admin/stats", headers=auth_headers(admin))
    assert resp.status_code == 200
