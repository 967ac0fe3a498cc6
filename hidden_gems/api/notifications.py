# FILE: hidden_gems/api/notifications.py
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.database import SessionLocal, get_db
from hidden_gems.core.errors import Unauthorized
from hidden_gems.models.user import User
from hidden_gems.schemas.notifications import NotificationList, UnreadCount
from hidden_gems.services import notification_service
from hidden_gems.services.chime_service import render_chime_wav
from hidden_gems.services.realtime_service import hub, send_json
from hidden_gems.services.serializers import notification_dict
from hidden_gems.api.deps import get_current_user, user_from_token

logger = logging.getLogger("hidden-gems.notifications")

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await notification_service.list_notifications(db, user.id)
    return {"data": [notification_dict(n) for n in rows]}


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return {"count": await notification_service.unread_count(db, user.id)}


@router.get("/chime")
async def chime():
    return Response(
        content=render_chime_wav(),
        media_type="audio/wav",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.post("/read-all")
async def mark_all_read(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    updated = await notification_service.mark_all_as_read(db, user.id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_read(
        notification_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    n = await notification_service.mark_as_read(db, user.id, notification_id)
    return {"data": notification_dict(n)}


@router.delete("/{notification_id}")
async def delete_notification(
        notification_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    await notification_service.delete_notification(db, user.id, notification_id)
    return {"success": True}


@ws_router.websocket("/ws/notifications")
async def notifications_websocket(websocket: WebSocket, token: str = Query(default="")):
    """Realtime feed of the caller's notification row changes."""
    async with SessionLocal() as db:
        try:
            user = await user_from_token(db, token)
        except Unauthorized as e:
            logger.info(f"Rejected notification socket: {e.message}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await websocket.accept()
    hub.subscribe(user.id, websocket)
    await send_json(websocket, {"event": "SUBSCRIBED", "table": "notifications", "user_id": user.id})

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await send_json(websocket, {"event": "PONG"})
    except WebSocketDisconnect:
        logger.info(f"Notification socket closed for {user.id}")
    finally:
        hub.unsubscribe(user.id, websocket)
