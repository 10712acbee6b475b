import logging
from datetime import datetime, timezone
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.models.task import Task, TaskManager
from oitrack.models.user import User
from oitrack.models.activity import MonthlyActivity
from oitrack.models.notification import Notification
from oitrack.schemas.notification import NotInputtedTask
from oitrack.ledger.metrics import TaskStatus, TaskType, normalize_status

logger = logging.getLogger(__name__)

TASK_TYPE_LABEL = {
    TaskType.OI: "OI",
    TaskType.KEY_FOCUS: "중점추진",
}

def reminder_message(task: Task, task_type: TaskType, year: int, month: int) -> str:
    return (
        f"[{TASK_TYPE_LABEL[task_type]}] '{task.name}' 과제의 "
        f"{year}년 {month}월 활동내역이 아직 입력되지 않았습니다."
    )

async def find_not_inputted(
    db: AsyncSession, task_type: TaskType, year: int, month: int
) -> List[NotInputtedTask]:
    """In-progress tasks of the given type with no activity record for year-month."""
    entered = (
        select(MonthlyActivity.task_id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
    )
    result = await db.execute(
        select(Task)
        .where(Task.task_type == task_type.value)
        .where(Task.id.not_in(entered))
        .order_by(Task.id)
    )

    items = []
    for task in result.scalars():
        # status labels are stored as received; compare after normalising
        if normalize_status(task.status) != TaskStatus.IN_PROGRESS:
            continue
        managers = await db.execute(
            select(User.id, User.name)
            .join(TaskManager, TaskManager.user_id == User.id)
            .where(TaskManager.task_id == task.id)
            .order_by(User.name)
        )
        rows = managers.fetchall()
        items.append(
            NotInputtedTask(
                task_id=task.id,
                task_name=task.name,
                task_type=task_type,
                manager_ids=[r[0] for r in rows],
                manager_names=[r[1] for r in rows],
            )
        )
    return items

async def send_reminders(
    db: AsyncSession,
    sender_id: str,
    task_type: TaskType,
    task_ids: List[int],
    year: int,
    month: int,
) -> int:
    """Record one notification per manager of each selected task. Returns how many were sent."""
    tasks = await db.execute(
        select(Task)
        .where(Task.id.in_(task_ids))
        .where(Task.task_type == task_type.value)
    )

    count = 0
    for task in tasks.scalars():
        managers = await db.execute(
            select(TaskManager.user_id).where(TaskManager.task_id == task.id)
        )
        message = reminder_message(task, task_type, year, month)
        for (recipient_id,) in managers.fetchall():
            db.add(
                Notification(
                    task_id=task.id,
                    recipient_id=recipient_id,
                    sender_id=sender_id,
                    task_type=task_type.value,
                    message=message,
                    status="sent",
                    sent_at=datetime.now(timezone.utc),
                )
            )
            # delivery transport lives outside this service
            logger.info("Reminder for task %s queued to %s", task.id, recipient_id)
            count += 1

    await db.commit()
    return count

async def resend(db: AsyncSession, notification: Notification) -> Notification:
    notification.resend_count = (notification.resend_count or 0) + 1
    notification.sent_at = datetime.now(timezone.utc)
    notification.status = "sent"
    notification.read_at = None
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    logger.info("Notification %s resent to %s", notification.id, notification.recipient_id)
    return notification
