"""Tests for ratings, rating aggregates and favorites."""

import pytest
from sqlalchemy.exc import IntegrityError

from hidden_gems.models import Favorite, Gem, Rating
from hidden_gems.services import favorite_service


@pytest.mark.asyncio
async def test_rate_gem_updates_aggregates_and_notifies(client, make_user, make_gem, auth_headers, fetch, notifications_of):
    owner = await make_user(role="owner")
    a = await make_user(full_name="Ama")
    b = await make_user(full_name="Baraka")
    gem = await make_gem(owner)

    resp = await client.post(f"/api/ratings/{gem.id}", json={"score": 5, "comment": "Stunning"}, headers=auth_headers(a))
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["full_name"] == "Ama"

    await client.post(f"/api/ratings/{gem.id}", json={"score": 4}, headers=auth_headers(b))

    stored = await fetch(Gem, gem.id)
    assert stored.ratings_count == 2
    assert stored.average_rating == 4.5

    notes = await notifications_of(owner.id)
    assert [n.type for n in notes] == ["new_review", "new_review"]
    assert notes[0].data["rating"] == 5


@pytest.mark.asyncio
async def test_rate_twice_rejected(client, make_user, make_gem, auth_headers):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner)

    await client.post(f"/api/ratings/{gem.id}", json={"score": 3}, headers=auth_headers(fan))
    resp = await client.post(f"/api/ratings/{gem.id}", json={"score": 4}, headers=auth_headers(fan))
    assert resp.status_code == 400
    assert resp.json() == {"error": "You have already rated this gem"}


@pytest.mark.asyncio
@pytest.mark.parametrize("score", [0, 6, "abc", 2.5, None])
async def test_rate_invalid_score(client, make_user, make_gem, auth_headers, score):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner)

    resp = await client.post(f"/api/ratings/{gem.id}", json={"score": score}, headers=auth_headers(fan))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Score must be between 1 and 5"}


@pytest.mark.asyncio
async def test_rate_unapproved_gem(client, make_user, make_gem, auth_headers):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner, status="pending")

    resp = await client.post(f"/api/ratings/{gem.id}", json={"score": 4}, headers=auth_headers(fan))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot rate a gem that is not approved"}


@pytest.mark.asyncio
async def test_rate_missing_gem(client, make_user, auth_headers):
    fan = await make_user()
    resp = await client.post("/api/ratings/nope", json={"score": 4}, headers=auth_headers(fan))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_rate_requires_auth(client, make_user, make_gem):
    owner = await make_user(role="owner")
    gem = await make_gem(owner)
    resp = await client.post(f"/api/ratings/{gem.id}", json={"score": 4})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_update_and_delete_own_rating(client, make_user, make_gem, auth_headers, fetch):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner)
    await client.post(f"/api/ratings/{gem.id}", json={"score": 2}, headers=auth_headers(fan))

    resp = await client.put(f"/api/ratings/{gem.id}", json={"score": 5}, headers=auth_headers(fan))
    assert resp.status_code == 200
    assert (await fetch(Gem, gem.id)).average_rating == 5.0

    resp = await client.put(f"/api/ratings/{gem.id}", json={"score": 9}, headers=auth_headers(fan))
    assert resp.status_code == 400

    resp = await client.delete(f"/api/ratings/{gem.id}", headers=auth_headers(fan))
    assert resp.status_code == 200
    stored = await fetch(Gem, gem.id)
    assert stored.ratings_count == 0
    assert stored.average_rating == 0.0

    resp = await client.delete(f"/api/ratings/{gem.id}", headers=auth_headers(fan))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_ratings_paginated(client, make_user, make_gem, auth_headers):
    owner = await make_user(role="owner")
    gem = await make_gem(owner)
    for score in (1, 2, 3):
        fan = await make_user()
        await client.post(f"/api/ratings/{gem.id}", json={"score": score}, headers=auth_headers(fan))

    resp = await client.get(f"/api/ratings/{gem.id}", params={"page": 1, "limit": 2})
    body = resp.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert [r["score"] for r in body["data"]] == [3, 2]


# ─────────────────────────────────────────────
# FAVORITES
# ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_save_and_list_favorites(client, make_user, make_gem, auth_headers, notifications_of):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner, name="Saved Spot")

    resp = await client.post(f"/api/gems/{gem.id}/favorite", headers=auth_headers(fan))
    assert resp.json()["created"] is True
    resp = await client.post(f"/api/gems/{gem.id}/favorite", headers=auth_headers(fan))
    assert resp.json()["created"] is False

    resp = await client.get("/api/favorites", headers=auth_headers(fan))
    assert [f["gem"]["name"] for f in resp.json()["data"]] == ["Saved Spot"]

    assert [n.type for n in await notifications_of(owner.id)] == ["gem_saved"]

    await client.delete(f"/api/gems/{gem.id}/favorite", headers=auth_headers(fan))
    resp = await client.get("/api/favorites", headers=auth_headers(fan))
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_save_missing_gem(client, make_user, auth_headers):
    fan = await make_user()
    resp = await client.post("/api/gems/missing/favorite", headers=auth_headers(fan))
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("model", [Favorite, Rating])
async def test_one_row_per_user_and_gem(db, make_user, make_gem, model):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner)
    extra = {"score": 4} if model is Rating else {}

    db.add(model(id="first", user_id=fan.id, gem_id=gem.id, **extra))
    await db.commit()
    db.add(model(id="second", user_id=fan.id, gem_id=gem.id, **extra))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_concurrent_save_reported_as_existing(db, make_user, make_gem, monkeypatch):
    owner = await make_user(role="owner")
    fan = await make_user()
    gem = await make_gem(owner)
    db.add(Favorite(id="other-request", user_id=fan.id, gem_id=gem.id))
    await db.commit()

    # The existence check misses the row the other request just wrote
    async def nothing_saved(*args, **kwargs):
        return None

    monkeypatch.setattr(favorite_service, "_find", nothing_saved)
    assert await favorite_service.save(db, gem.id, fan) is False
