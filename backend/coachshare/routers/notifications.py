"""Notification routes: inbox listing, read state, deletion."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import get_current_user
from coachshare.dependencies import get_db
from coachshare.models.user import User
from coachshare.schemas.notification import MarkAllReadResponse, NotificationPage, NotificationRead
from coachshare.services import notification_service
from coachshare.services.relationship_service import parse_uuid

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
async def list_notifications(
    read: bool | None = None,
    limit: int = Query(10),
    page: int = Query(1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await notification_service.get_user_notifications(
        db, current_user.id, read=read, limit=limit, page=page
    )


@router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = await notification_service.mark_all_as_read(db, current_user.id)
    return {"updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await notification_service.mark_as_read(
        db,
        notification_id=parse_uuid(notification_id, "notification ID"),
        user_id=current_user.id,
    )


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await notification_service.delete_notification(
        db,
        notification_id=parse_uuid(notification_id, "notification ID"),
        user_id=current_user.id,
    )
