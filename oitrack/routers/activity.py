from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from oitrack.config import settings
from oitrack.database import get_db
from oitrack.core.identity import get_current_user
from oitrack.models.activity import MonthlyActivity, ActivityAttachment
from oitrack.schemas.activity import (
    ActivityCreate, ActivityResponse, ActivitySaveResponse,
    AchievementPreview, AttachmentResponse
)
from oitrack.ledger.achievement import color_hex
from oitrack.ledger.metrics import normalize_status, unit_for
from oitrack.services.performance import year_to_date_achievement
from oitrack.services.tasks import get_manager_ids, get_task_or_404, require_manager, to_ledger_task

router = APIRouter(prefix="/tasks", tags=["activities"])

def _resolve_period(year: Optional[int], month: Optional[int]):
    now = datetime.now()
    if month is None:
        month = now.month
    if year is None:
        year = now.year

    if not (1 <= month <= 12):
        raise HTTPException(400, "Invalid month")
    if year < 1900 or year > 2100:
        raise HTTPException(400, "Invalid year")
    return year, month

async def _to_response(db: AsyncSession, activity: MonthlyActivity) -> ActivityResponse:
    attachments = await db.execute(
        select(ActivityAttachment)
        .where(ActivityAttachment.activity_id == activity.id)
        .order_by(ActivityAttachment.id)
    )
    return ActivityResponse(
        activity_id=activity.id,
        task_id=activity.task_id,
        year=activity.year,
        month=activity.month,
        activity_content=activity.activity_content,
        actual_value=activity.actual_value,
        status=normalize_status(activity.status) if activity.status else None,
        user_id=activity.user_id,
        created_at=activity.created_at,
        updated_at=activity.updated_at,
        attachments=[AttachmentResponse.model_validate(a) for a in attachments.scalars()],
    )

@router.get("/{task_id}/activity", response_model=Optional[ActivityResponse])
async def get_activity(
    task_id: int,
    year: int = None,
    month: int = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await get_task_or_404(db, task_id)
    year, month = _resolve_period(year, month)

    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.task_id == task_id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
    )
    activity = result.scalar_one_or_none()
    if not activity:
        return None
    return await _to_response(db, activity)

@router.post("/{task_id}/activity", response_model=ActivitySaveResponse)
async def save_activity(
    task_id: int,
    activity_in: ActivityCreate,
    year: int = None,
    month: int = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    year, month = _resolve_period(year, month)

    now = datetime.now()
    if (year, month) > (now.year, now.month):
        raise HTTPException(400, "Cannot record activity for a future month")
    if not activity_in.activity_content.strip():
        raise HTTPException(400, "Activity content is required")

    await require_manager(db, task, current_user)

    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.task_id == task_id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        activity = MonthlyActivity(task_id=task_id, year=year, month=month)

    activity.user_id = current_user.id
    activity.activity_content = activity_in.activity_content
    if task.evaluation_type == "quantitative":
        activity.actual_value = activity_in.actual_value
    if activity_in.status is not None:
        activity.status = activity_in.status.value
        task.status = activity_in.status.value
        db.add(task)
    elif activity.status is None:
        activity.status = normalize_status(task.status).value

    db.add(activity)
    await db.flush()
    for attachment in activity_in.attachments:
        db.add(ActivityAttachment(activity_id=activity.id, file_name=attachment.file_name, url=attachment.url))

    await db.commit()
    await db.refresh(activity)
    return ActivitySaveResponse(
        activity_id=activity.id,
        created_at=activity.created_at,
        updated_at=activity.updated_at,
    )

@router.get("/{task_id}/activity/previous", response_model=List[ActivityResponse])
async def get_previous_activities(
    task_id: int,
    limit: int = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await get_task_or_404(db, task_id)
    if limit is None:
        limit = settings.PREVIOUS_ACTIVITY_LIMIT
    if limit < 1:
        raise HTTPException(400, "limit must be positive")

    now = datetime.now()
    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.task_id == task_id)
        .where(or_(
            MonthlyActivity.year < now.year,
            and_(MonthlyActivity.year == now.year, MonthlyActivity.month < now.month),
        ))
        .order_by(MonthlyActivity.year.desc(), MonthlyActivity.month.desc())
        .limit(limit)
    )
    return [await _to_response(db, a) for a in result.scalars().all()]

@router.get("/{task_id}/achievement", response_model=AchievementPreview)
async def preview_achievement(
    task_id: int,
    year: int = None,
    month: int = None,
    value: Optional[float] = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """
    Achievement as it would look with `value` entered for year-month.
    Without `value`, the persisted figure for that month is used.
    """
    task = await get_task_or_404(db, task_id)
    if task.evaluation_type != "quantitative":
        raise HTTPException(400, "Achievement applies to quantitative tasks only")
    year, month = _resolve_period(year, month)

    ledger_task = to_ledger_task(task, await get_manager_ids(db, task_id))
    result = await year_to_date_achievement(db, ledger_task, year, month, current_value=value)
    return AchievementPreview(
        year=year,
        month=month,
        metric=ledger_task.metric,
        unit=unit_for(ledger_task.metric),
        target_value=ledger_task.target_value,
        actual_value=result.actual_value,
        achievement_rate=round(result.achievement_rate, 1),
        color=color_hex(result.achievement_rate),
    )
