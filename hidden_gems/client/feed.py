# FILE: hidden_gems/client/feed.py
"""
Session-side notification feed.

Keeps the signed-in user's most recent notifications in memory, applies the
realtime events pushed over ``/ws/notifications`` and performs read/delete
actions optimistically: the local list changes first, the API call follows,
and a failed call restores the previous state and is recorded in
``sync_errors``.
"""
import logging
from typing import Any, AsyncIterable, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger("hidden-gems.feed")

FEED_LIMIT = 50

NewNotificationHook = Callable[[Dict[str, Any]], None]


class NotificationFeed:
    def __init__(self, client: httpx.AsyncClient, token: Optional[str] = None, limit: int = FEED_LIMIT):
        self.client = client
        self.limit = limit
        self.notifications: List[Dict[str, Any]] = []
        self.on_new: List[NewNotificationHook] = []
        self.sync_errors: List[Dict[str, Any]] = []
        self.server_unread: Optional[int] = None
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    # ─────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.get("read"))

    def _index(self, notification_id: str) -> int:
        for i, n in enumerate(self.notifications):
            if n.get("id") == notification_id:
                return i
        return -1

    async def load(self) -> List[Dict[str, Any]]:
        resp = await self.client.get("/api/notifications", headers=self._headers)
        resp.raise_for_status()
        self.notifications = list(resp.json().get("data", []))[: self.limit]
        return self.notifications

    async def refresh_unread_count(self) -> int:
        resp = await self.client.get("/api/notifications/unread-count", headers=self._headers)
        resp.raise_for_status()
        self.server_unread = int(resp.json().get("count", 0))
        if self.server_unread != self.unread_count:
            logger.info(f"Unread count drift: local={self.unread_count} server={self.server_unread}")
        return self.server_unread

    # ─────────────────────────────────────────────
    # REALTIME
    # ─────────────────────────────────────────────

    def apply_event(self, message: Dict[str, Any]) -> None:
        event = message.get("event")
        new = message.get("new") or {}
        old = message.get("old") or {}

        if event == "INSERT" and new.get("id"):
            idx = self._index(new["id"])
            if idx >= 0:
                self.notifications[idx] = new
                return
            self.notifications.insert(0, new)
            del self.notifications[self.limit:]
            self._fire_new(new)
        elif event == "UPDATE" and new.get("id"):
            idx = self._index(new["id"])
            if idx >= 0:
                self.notifications[idx] = new
        elif event == "DELETE" and old.get("id"):
            idx = self._index(old["id"])
            if idx >= 0:
                self.notifications.pop(idx)

    def _fire_new(self, notification: Dict[str, Any]) -> None:
        for hook in list(self.on_new):
            try:
                hook(notification)
            except Exception:
                # A failing chime or desktop hook must not break the feed
                logger.exception("on_new hook failed")

    async def consume(self, messages: AsyncIterable[Dict[str, Any]]) -> None:
        async for message in messages:
            self.apply_event(message)

    # ─────────────────────────────────────────────
    # OPTIMISTIC ACTIONS
    # ─────────────────────────────────────────────

    def _record_error(self, op: str, notification_id: Optional[str], error: Exception) -> None:
        logger.warning(f"Notification {op} failed for {notification_id}: {error}")
        self.sync_errors.append({"op": op, "id": notification_id, "error": str(error)})

    async def mark_as_read(self, notification_id: str) -> bool:
        idx = self._index(notification_id)
        if idx < 0 or self.notifications[idx].get("read"):
            return True

        previous = self.notifications[idx]
        self.notifications[idx] = dict(previous, read=True)
        try:
            resp = await self.client.patch(f"/api/notifications/{notification_id}/read", headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            idx = self._index(notification_id)
            if idx >= 0:
                self.notifications[idx] = previous
            self._record_error("mark_as_read", notification_id, e)
            return False
        return True

    async def mark_all_as_read(self) -> bool:
        unread_ids = {n["id"] for n in self.notifications if not n.get("read")}
        if not unread_ids:
            return True

        self.notifications = [dict(n, read=True) if n["id"] in unread_ids else n for n in self.notifications]
        try:
            resp = await self.client.post("/api/notifications/read-all", headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self.notifications = [dict(n, read=False) if n["id"] in unread_ids else n for n in self.notifications]
            self._record_error("mark_all_as_read", None, e)
            return False
        return True

    async def delete(self, notification_id: str) -> bool:
        idx = self._index(notification_id)
        if idx < 0:
            return True

        removed = self.notifications.pop(idx)
        try:
            resp = await self.client.delete(f"/api/notifications/{notification_id}", headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            if self._index(notification_id) < 0:
                self.notifications.insert(min(idx, len(self.notifications)), removed)
            self._record_error("delete", notification_id, e)
            return False
        return True

    async def fetch_chime(self) -> bytes:
        resp = await self.client.get("/api/notifications/chime")
        resp.raise_for_status()
        return resp.content
