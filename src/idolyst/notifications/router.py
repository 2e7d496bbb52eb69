"""Notification and notification-preference endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.dependencies import get_current_user
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_publisher
from idolyst.errors import ValidationFailedError
from idolyst.notifications import service
from idolyst.notifications.schemas import (
    MuteRequest,
    NotificationGroupResponse,
    NotificationListResponse,
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    NotificationResponse,
    UnreadCountResponse,
)
from idolyst.realtime.publisher import DeferredPublisher

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's notifications, newest first."""
    notifications, total = await service.get_notifications(db, user.id, limit, offset)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/notifications/grouped", response_model=list[NotificationGroupResponse])
async def grouped_notifications(
    limit: int = Query(50, ge=1, le=200),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Today / Yesterday / Earlier groups."""
    notifications, _ = await service.get_notifications(db, user.id, limit, 0)
    items = [NotificationResponse.model_validate(n).model_dump() for n in notifications]
    return service.group_by_day(items)


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return UnreadCountResponse(count=await service.get_unread_count(db, user.id))


@router.post("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    notification_id: str,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    found = await service.mark_as_read(db, user.id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"detail": "Notification marked as read"}


@router.post("/notifications/read-all", status_code=200)
async def mark_all_read(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    count = await service.mark_all_as_read(db, user.id)
    await db.commit()
    return {"detail": f"Marked {count} notifications as read"}


# ── Preferences ──


@router.get("/notification-preferences", response_model=NotificationPreferencesResponse)
async def get_preferences(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    prefs = await service.fetch_notification_preferences(db, user.id)
    await db.commit()
    return NotificationPreferencesResponse(**prefs)


@router.patch("/notification-preferences", response_model=NotificationPreferencesResponse)
async def update_preferences(
    body: NotificationPreferencesUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        prefs = await service.update_notification_preferences(
            db, publisher, user.id, body.model_dump(exclude_none=True)
        )
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    await publisher.flush()
    return NotificationPreferencesResponse(**prefs)


@router.post("/notification-preferences/mute", response_model=NotificationPreferencesResponse)
async def mute(
    body: MuteRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    prefs = await service.mute_notifications(db, publisher, user.id, body.hours)
    await db.commit()
    await publisher.flush()
    return NotificationPreferencesResponse(**prefs)


@router.delete("/notification-preferences/mute", response_model=NotificationPreferencesResponse)
async def unmute(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    prefs = await service.unmute_notifications(db, publisher, user.id)
    await db.commit()
    await publisher.flush()
    return NotificationPreferencesResponse(**prefs)
