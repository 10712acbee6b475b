from datetime import datetime
from typing import Dict, List, Optional
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select
from oitrack.models.task import Task, TaskManager
from oitrack.models.goal import MonthlyGoal
from oitrack.models.notification import Notification
from oitrack.models.user import Department, User
from oitrack.models.activity import ActivityAttachment, MonthlyActivity
from oitrack.schemas.task import TaskResponse
from oitrack.schemas.user import ManagerResponse
from oitrack.ledger.metrics import normalize_metric, normalize_status, normalize_task_type, status_text, unit_for
from oitrack.ledger.records import LedgerTask
from oitrack.services.performance import year_to_date_achievement


async def get_task_or_404(db: AsyncSession, task_id: int) -> Task:
    result = await db.execute(select(Task).where(Task.id == task_id))
    task = result.scalar_one_or_none()
    if not task:
        raise HTTPException(404, "Task not found")
    return task


async def get_manager_ids(db: AsyncSession, task_id: int) -> List[str]:
    result = await db.execute(
        select(TaskManager.user_id).where(TaskManager.task_id == task_id)
    )
    return [row[0] for row in result.fetchall()]


async def require_manager(db: AsyncSession, task: Task, user) -> None:
    if user.id not in await get_manager_ids(db, task.id):
        raise HTTPException(403, "Only task managers can write activity for this task")


def top_department(dept_id: Optional[int], departments: Dict[int, Department]) -> Optional[Department]:
    dept = departments.get(dept_id)
    seen = set()
    while dept is not None and dept.parent_id is not None and dept.id not in seen:
        seen.add(dept.id)
        parent = departments.get(dept.parent_id)
        if parent is None:
            break
        dept = parent
    return dept


async def get_managers(db: AsyncSession, task_id: int) -> List[ManagerResponse]:
    result = await db.execute(
        select(User)
        .join(TaskManager, TaskManager.user_id == User.id)
        .where(TaskManager.task_id == task_id)
        .order_by(User.name)
    )
    users = result.scalars().all()

    departments = {d.id: d for d in (await db.execute(select(Department))).scalars()}
    managers = []
    for user in users:
        dept = departments.get(user.dept_id)
        top = top_department(user.dept_id, departments)
        managers.append(
            ManagerResponse(
                user_id=user.id,
                name=user.name,
                dept_name=dept.name if dept else None,
                top_dept_name=top.name if top else None,
            )
        )
    return managers


async def set_managers(db: AsyncSession, task_id: int, manager_ids: List[str]) -> None:
    if manager_ids:
        found = await db.execute(select(User.id).where(User.id.in_(manager_ids)))
        missing = set(manager_ids) - {row[0] for row in found.fetchall()}
        if missing:
            raise HTTPException(400, f"Unknown managers: {', '.join(sorted(missing))}")

    await db.execute(delete(TaskManager).where(TaskManager.task_id == task_id))
    for user_id in dict.fromkeys(manager_ids):
        db.add(TaskManager(task_id=task_id, user_id=user_id))


def to_ledger_task(task: Task, manager_ids: List[str]) -> LedgerTask:
    return LedgerTask(
        id=task.id,
        name=task.name,
        evaluation_type=task.evaluation_type or "quantitative",
        metric=task.metric,
        target_value=task.target_value,
        reverse_yn=bool(task.reverse_yn),
        status=task.status,
        manager_ids=manager_ids,
    )


async def build_task_response(db: AsyncSession, task: Task, now: Optional[datetime] = None) -> TaskResponse:
    now = now or datetime.now()
    managers = await get_managers(db, task.id)

    inputted = await db.execute(
        select(MonthlyActivity.id)
        .where(MonthlyActivity.task_id == task.id)
        .where(MonthlyActivity.year == now.year)
        .where(MonthlyActivity.month == now.month)
    )

    rate = 0.0
    if task.evaluation_type == "quantitative":
        ledger_task = to_ledger_task(task, [m.user_id for m in managers])
        rate = (await year_to_date_achievement(db, ledger_task, now.year, now.month)).achievement_rate

    metric = normalize_metric(task.metric) if task.metric else None
    return TaskResponse(
        id=task.id,
        task_type=normalize_task_type(task.task_type),
        category1=task.category1,
        category2=task.category2,
        name=task.name,
        description=task.description,
        start_date=task.start_date,
        end_date=task.end_date,
        status=normalize_status(task.status),
        status_text=status_text(task.status),
        performance_type=task.performance_type,
        evaluation_type=task.evaluation_type,
        metric=metric,
        unit=unit_for(metric) if metric else None,
        target_value=task.target_value,
        reverse_yn=bool(task.reverse_yn),
        dept_id=task.dept_id,
        managers=managers,
        is_inputted=inputted.scalar_one_or_none() is not None,
        achievement_rate=round(rate, 1),
        created_at=task.created_at,
    )


async def delete_task_rows(db: AsyncSession, task: Task) -> None:
    """Delete a task and everything hanging off it."""
    activity_ids = select(MonthlyActivity.id).where(MonthlyActivity.task_id == task.id)
    await db.execute(delete(ActivityAttachment).where(ActivityAttachment.activity_id.in_(activity_ids)))
    await db.execute(delete(MonthlyActivity).where(MonthlyActivity.task_id == task.id))
    await db.execute(delete(MonthlyGoal).where(MonthlyGoal.task_id == task.id))
    await db.execute(delete(Notification).where(Notification.task_id == task.id))
    await db.execute(delete(TaskManager).where(TaskManager.task_id == task.id))
    await db.delete(task)
