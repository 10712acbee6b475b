import math
from datetime import datetime, timezone
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from oitrack.config import settings
from oitrack.database import get_db
from oitrack.core.identity import get_current_user, get_current_admin
from oitrack.models.notification import Notification
from oitrack.schemas.notification import (
    NotInputtedTask, NotificationSend, NotificationSendResult,
    NotificationResponse, NotificationPage, UnreadCount
)
from oitrack.ledger.metrics import normalize_task_type
from oitrack.services.notifications import find_not_inputted, resend, send_reminders

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("/not-inputted", response_model=List[NotInputtedTask])
async def get_not_inputted_tasks(
    type: str = "OI",
    db: AsyncSession = Depends(get_db),
    current_admin = Depends(get_current_admin)
):
    now = datetime.now()
    return await find_not_inputted(db, normalize_task_type(type), now.year, now.month)

@router.post("/send", response_model=NotificationSendResult)
async def send_notifications(
    request_in: NotificationSend,
    db: AsyncSession = Depends(get_db),
    current_admin = Depends(get_current_admin)
):
    now = datetime.now()
    count = await send_reminders(
        db, current_admin.id, request_in.task_type, request_in.task_ids, now.year, now.month
    )
    if count == 0:
        return NotificationSendResult(success=False, count=0, message="No managers to notify for the selected tasks")
    return NotificationSendResult(success=True, count=count)

@router.get("", response_model=NotificationPage)
async def list_notifications(
    page: int = 0,
    size: int = None,
    db: AsyncSession = Depends(get_db),
    current_admin = Depends(get_current_admin)
):
    if size is None:
        size = settings.NOTIFICATION_PAGE_SIZE
    if page < 0 or size < 1:
        raise HTTPException(400, "Invalid page or size")

    total = (await db.execute(select(func.count(Notification.id)))).scalar_one()
    result = await db.execute(
        select(Notification)
        .order_by(Notification.sent_at.desc(), Notification.id.desc())
        .offset(page * size)
        .limit(size)
    )
    return NotificationPage(
        content=[NotificationResponse.model_validate(n) for n in result.scalars()],
        total_pages=math.ceil(total / size),
        total_elements=total,
        current_page=page,
    )

@router.get("/me", response_model=List[NotificationResponse])
async def get_my_notifications(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == current_user.id)
        .order_by(Notification.sent_at.desc(), Notification.id.desc())
    )
    return result.scalars().all()

@router.get("/me/unread-count", response_model=UnreadCount)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(func.count(Notification.id))
        .where(Notification.recipient_id == current_user.id)
        .where(Notification.status == "sent")
    )
    return UnreadCount(count=result.scalar_one())

@router.post("/{notification_id}/resend", response_model=NotificationResponse)
async def resend_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin = Depends(get_current_admin)
):
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(404, "Notification not found")
    return await resend(db, notification)

@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.recipient_id == current_user.id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(404, "Notification not found")

    if notification.status != "read":
        notification.status = "read"
        notification.read_at = datetime.now(timezone.utc)
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
    return notification
