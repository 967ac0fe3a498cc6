"""NotificationFeed against the live app and against a failing server."""

import httpx
import pytest

from hidden_gems.client import NotificationFeed
from hidden_gems.services import notification_service
from hidden_gems.services.auth_service import create_token


def _n(nid, read=False):
    return {"id": nid, "type": "gem_saved", "title": nid, "message": "m", "data": {}, "read": read}


def _failing_client(status=500):
    def handler(request):
        return httpx.Response(status, json={"error": "boom"})

    return httpx.AsyncClient(base_url="http://test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_load_and_unread_count(client, db, make_user):
    user = await make_user()
    first = await notification_service.notify(db, user.id, "gem_saved", "Saved", "one")
    await notification_service.notify(db, user.id, "gem_saved", "Saved", "two")
    await notification_service.mark_as_read(db, user.id, first.id)

    feed = NotificationFeed(client, token=create_token(user.id, user.email))
    loaded = await feed.load()

    assert len(loaded) == 2
    assert feed.unread_count == 1
    assert await feed.refresh_unread_count() == 1
    assert feed.server_unread == feed.unread_count


@pytest.mark.asyncio
async def test_optimistic_actions_hit_the_api(client, db, make_user):
    user = await make_user()
    a = await notification_service.notify(db, user.id, "gem_saved", "Saved", "one")
    b = await notification_service.notify(db, user.id, "gem_saved", "Saved", "two")
    feed = NotificationFeed(client, token=create_token(user.id, user.email))
    await feed.load()

    assert await feed.mark_as_read(a.id) is True
    assert await feed.delete(b.id) is True

    assert [n["id"] for n in feed.notifications] == [a.id]
    assert feed.unread_count == 0
    assert await notification_service.unread_count(db, user.id) == 0
    assert feed.sync_errors == []


def test_insert_prepends_and_fires_hooks():
    feed = NotificationFeed(client=None)
    feed.notifications = [_n("old")]
    heard = []
    feed.on_new.append(heard.append)

    feed.apply_event({"event": "INSERT", "new": _n("fresh")})

    assert [n["id"] for n in feed.notifications] == ["fresh", "old"]
    assert [n["id"] for n in heard] == ["fresh"]
    assert feed.unread_count == 2


def test_duplicate_insert_replaces_without_hook():
    feed = NotificationFeed(client=None)
    feed.notifications = [_n("a")]
    heard = []
    feed.on_new.append(heard.append)

    feed.apply_event({"event": "INSERT", "new": _n("a", read=True)})

    assert feed.notifications == [_n("a", read=True)]
    assert heard == []


def test_insert_respects_limit():
    feed = NotificationFeed(client=None, limit=2)
    for nid in ("a", "b", "c"):
        feed.apply_event({"event": "INSERT", "new": _n(nid)})
    assert [n["id"] for n in feed.notifications] == ["c", "b"]


def test_update_and_delete_events():
    feed = NotificationFeed(client=None)
    feed.notifications = [_n("a"), _n("b")]

    feed.apply_event({"event": "UPDATE", "new": _n("a", read=True)})
    feed.apply_event({"event": "DELETE", "old": {"id": "b"}})
    feed.apply_event({"event": "DELETE", "old": {"id": "missing"}})
    feed.apply_event({"event": "UPDATE", "new": _n("missing")})

    assert feed.notifications == [_n("a", read=True)]


def test_failing_hook_does_not_break_feed():
    feed = NotificationFeed(client=None)
    heard = []

    def broken(notification):
        raise RuntimeError("no speakers")

    feed.on_new.extend([broken, heard.append])
    feed.apply_event({"event": "INSERT", "new": _n("a")})

    assert [n["id"] for n in feed.notifications] == ["a"]
    assert [n["id"] for n in heard] == ["a"]


@pytest.mark.asyncio
async def test_consume_applies_stream():
    feed = NotificationFeed(client=None)

    async def stream():
        yield {"event": "SUBSCRIBED", "table": "notifications", "user_id": "u"}
        yield {"event": "INSERT", "new": _n("a")}
        yield {"event": "INSERT", "new": _n("b")}
        yield {"event": "DELETE", "old": {"id": "a"}}

    await feed.consume(stream())
    assert [n["id"] for n in feed.notifications] == ["b"]


@pytest.mark.asyncio
async def test_mark_as_read_rolls_back_on_failure():
    async with _failing_client() as http:
        feed = NotificationFeed(http, token="t")
        feed.notifications = [_n("a")]

        assert await feed.mark_as_read("a") is False

    assert feed.notifications == [_n("a")]
    assert feed.sync_errors[0]["op"] == "mark_as_read"
    assert feed.sync_errors[0]["id"] == "a"


@pytest.mark.asyncio
async def test_mark_all_rolls_back_on_failure():
    async with _failing_client() as http:
        feed = NotificationFeed(http, token="t")
        feed.notifications = [_n("a"), _n("b", read=True)]

        assert await feed.mark_all_as_read() is False

    assert feed.notifications == [_n("a"), _n("b", read=True)]
    assert feed.sync_errors == [{"op": "mark_all_as_read", "id": None, "error": feed.sync_errors[0]["error"]}]


@pytest.mark.asyncio
async def test_delete_restores_position_on_failure():
    async with _failing_client(status=404) as http:
        feed = NotificationFeed(http, token="t")
        feed.notifications = [_n("a"), _n("b"), _n("c")]

        assert await feed.delete("b") is False

    assert [n["id"] for n in feed.notifications] == ["a", "b", "c"]
    assert feed.sync_errors[0]["op"] == "delete"


@pytest.mark.asyncio
async def test_fetch_chime(client):
    feed = NotificationFeed(client)
    assert (await feed.fetch_chime())[:4] == b"RIFF"
