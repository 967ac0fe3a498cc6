# hidden_gems/services/realtime_service.py
"""
In-process realtime channel for notification row changes.

Every authenticated WebSocket session subscribes to its user's channel; the
notification service publishes INSERT / UPDATE / DELETE events after each
committed write. The hub is process-local, like the sessions it serves.
"""
import logging
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger("hidden-gems.realtime")


async def send_json(ws: WebSocket, data: Dict[str, Any]):
    """Send JSON data to WebSocket if connected."""
    if ws.client_state == WebSocketState.CONNECTED:
        await ws.send_json(data)


class NotificationHub:
    def __init__(self):
        # user_id -> open sessions
        self._channels: Dict[str, Set[WebSocket]] = {}

    def subscribe(self, user_id: str, ws: WebSocket) -> None:
        self._channels.setdefault(user_id, set()).add(ws)
        logger.info(f"Session subscribed to notifications of {user_id}")

    def unsubscribe(self, user_id: str, ws: WebSocket) -> None:
        sessions = self._channels.get(user_id)
        if not sessions:
            return
        sessions.discard(ws)
        if not sessions:
            self._channels.pop(user_id, None)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._channels.get(user_id, ()))

    async def publish(
        self,
        user_id: str,
        event: str,
        new: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Push one change event to every session of ``user_id``; returns deliveries."""
        message = {"event": event, "table": "notifications", "new": new, "old": old}
        delivered = 0
        dead = []
        for ws in list(self._channels.get(user_id, ())):
            try:
                await send_json(ws, message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping notification session for {user_id}: {e}")
                dead.append(ws)
        for ws in dead:
            self.unsubscribe(user_id, ws)
        return delivered

    def clear(self) -> None:
        self._channels.clear()


hub = NotificationHub()
