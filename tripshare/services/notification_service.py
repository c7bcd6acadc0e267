"""
Notification fan-out.

`notify` is the only way the booking core produces notifications. It never
raises: a failure to persist or to push is logged as
`notification_delivery_failed` and the caller's transition stands.
"""

from typing import Any, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.exceptions import NotFound
from tripshare.core.logging import get_logger
from tripshare.core.metrics import record_notification
from tripshare.infrastructure.notification_transport import get_transport
from tripshare.models.notification import Notification

logger = get_logger(__name__)

SYSTEM = "system"


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "recipient_id": notification.recipient_id,
        "actor_id": notification.actor_id,
        "actor_name": notification.actor_name,
        "type": notification.type,
        "message": notification.message,
        "metadata": notification.payload or {},
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


async def notify(
    db: AsyncSession,
    recipient_id: Optional[str],
    actor_id: str,
    type: str,
    message: str,
    metadata: Optional[dict[str, Any]] = None,
    actor_name: Optional[str] = None,
) -> Optional[Notification]:
    """
    Persist a notification for `recipient_id` and push it live.

    Returns None without writing anything when there is no recipient or the
    recipient is the actor.
    """
    if not recipient_id or recipient_id == actor_id:
        record_notification("skipped")
        return None

    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        actor_name=actor_name,
        type=type,
        message=message,
        payload=metadata or {},
        is_read=False,
    )

    try:
        async with db.begin_nested():
            db.add(notification)
            await db.flush()
    except SQLAlchemyError as e:
        record_notification("failed")
        logger.error(
            "notification_delivery_failed",
            stage="persist",
            recipient_id=recipient_id,
            error=str(e),
        )
        return None

    record_notification("persisted")

    try:
        if await get_transport().publish(recipient_id, serialize_notification(notification)):
            record_notification("published")
    except Exception as e:
        record_notification("failed")
        logger.warning(
            "notification_delivery_failed",
            stage="publish",
            recipient_id=recipient_id,
            notification_id=notification.id,
            error=str(e),
        )

    return notification


async def list_notifications(db: AsyncSession, recipient_id: str, limit: int = 50) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == recipient_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, recipient_id: str, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("الإشعار غير موجود")

    notification.is_read = True
    await db.flush()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, recipient_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def unread_count(db: AsyncSession, recipient_id: str) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == recipient_id,
            Notification.is_read.is_(False),
        )
    )
    return int(result.scalar() or 0)
