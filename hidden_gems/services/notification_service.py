# hidden_gems/services/notification_service.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core.errors import NotFound, ValidationError
from hidden_gems.models import Notification, User
from hidden_gems.models.notification import NOTIFICATION_TYPES
from hidden_gems.services.realtime_service import hub
from hidden_gems.services.serializers import notification_dict

logger = logging.getLogger("hidden-gems.notifications")

FEED_LIMIT = 50


async def notify(
    db: AsyncSession,
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    """Insert one notification, commit, and push it to the user's open sessions."""
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type}")

    n = Notification(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data or {},
        read=False,
        created_at=datetime.utcnow(),
    )
    db.add(n)
    await db.commit()

    await hub.publish(user_id, "INSERT", new=notification_dict(n))
    logger.info(f"Notified {user_id}: {type}")
    return n


async def notify_admins(
    db: AsyncSession,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> List[Notification]:
    admin_ids = (
        await db.execute(select(User.id).where(User.role == "admin"))
    ).scalars().all()

    sent = []
    for admin_id in admin_ids:
        sent.append(await notify(db, admin_id, type, title, message, data))
    return sent


async def list_notifications(db: AsyncSession, user_id: str, limit: int = FEED_LIMIT) -> List[Notification]:
    rows = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(rows.scalars().all())


async def unread_count(db: AsyncSession, user_id: str) -> int:
    n = (
        await db.execute(
            select(func.count(Notification.id))
            .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        )
    ).scalar_one()
    return int(n or 0)


async def _get_owned(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    n = (
        await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
    ).scalar_one_or_none()
    if not n:
        raise NotFound("Notification not found")
    return n


async def mark_as_read(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    n = await _get_owned(db, user_id, notification_id)
    if not n.read:
        n.read = True
        await db.commit()
        await hub.publish(user_id, "UPDATE", new=notification_dict(n))
    return n


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    unread = (
        await db.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.read == False,  # noqa: E712
            )
        )
    ).scalars().all()
    if not unread:
        return 0

    await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
    )
    await db.commit()

    for n in unread:
        n.read = True
        await hub.publish(user_id, "UPDATE", new=notification_dict(n))
    return len(unread)


async def delete_notification(db: AsyncSession, user_id: str, notification_id: str) -> None:
    n = await _get_owned(db, user_id, notification_id)
    old = notification_dict(n)
    await db.delete(n)
    await db.commit()
    await hub.publish(user_id, "DELETE", old={"id": old["id"]})
