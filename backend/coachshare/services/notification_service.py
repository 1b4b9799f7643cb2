"""Notification service: per-user inbox plus best-effort real-time push."""

import logging
import math
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import InvalidInput, NotFound
from coachshare.models.notification import Notification, NotificationType
from coachshare.models.user import User
from coachshare.services.realtime import get_hub

logger = logging.getLogger("coachshare.notifications")

MAX_PAGE_SIZE = 100


def serialize(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "title": notification.title,
        "message": notification.message,
        "type": notification.type.value,
        "related_id": notification.related_id,
        "read": notification.read,
        "created_at": notification.created_at.isoformat(),
    }


async def create_notification(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    title: str,
    message: str,
    type: NotificationType = NotificationType.system,
    related_id: str | None = None,
) -> Notification:
    """Store a notification and push it to the user's open sockets.

    Raises NotFound if the user does not exist. Push failures are logged and
    never undo the stored notification.
    """
    if await db.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found. Cannot create notification.")

    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        related_id=related_id,
        read=False,
    )
    db.add(notification)
    await db.flush()

    try:
        await get_hub().send(str(user_id), {"event": "notification", "data": serialize(notification)})
    except Exception:
        logger.warning("real-time push failed for user %s", user_id, exc_info=True)

    return notification


async def get_user_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    read: bool | None = None,
    limit: int = 10,
    page: int = 1,
) -> dict:
    """One page of a user's notifications, newest first."""
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if page < 1:
        raise InvalidInput("page must be at least 1")

    conditions = [Notification.user_id == user_id]
    if read is not None:
        conditions.append(Notification.read == read)

    total = (
        await db.execute(select(func.count()).select_from(Notification).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "notifications": list(result.scalars().all()),
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
    }


async def _get_owned(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("Notification not found.")
    return notification


async def mark_as_read(
    db: AsyncSession,
    *,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Notification:
    notification = await _get_owned(db, notification_id, user_id)
    notification.read = True
    await db.flush()
    return notification


async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Mark every unread notification read. Returns the number changed."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
    )
    return result.rowcount or 0


async def delete_notification(
    db: AsyncSession,
    *,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    notification = await _get_owned(db, notification_id, user_id)
    await db.delete(notification)
    await db.flush()


async def delete_all_for_user(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(delete(Notification).where(Notification.user_id == user_id))
    return result.rowcount or 0
