from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.database import get_db
from oitrack.core.identity import get_current_user
from oitrack.models.task import Task, TaskManager
from oitrack.schemas.task import TaskCreate, TaskUpdate, TaskResponse
from oitrack.ledger.metrics import normalize_task_type
from oitrack.services.tasks import build_task_response, delete_task_rows, get_task_or_404, set_managers

router = APIRouter(prefix="/tasks", tags=["tasks"])

MANAGER_ROLES = {"manager", "담당자"}

def _apply(task: Task, task_in: TaskCreate) -> None:
    task.task_type = task_in.task_type.value
    task.category1 = task_in.category1
    task.category2 = task_in.category2
    task.name = task_in.name
    task.description = task_in.description
    task.start_date = task_in.start_date
    task.end_date = task_in.end_date
    task.status = task_in.status.value
    task.performance_type = task_in.performance_type
    task.evaluation_type = task_in.evaluation_type
    task.metric = task_in.metric.value if task_in.metric else None
    task.target_value = task_in.target_value
    task.reverse_yn = task_in.reverse_yn
    task.dept_id = task_in.dept_id

@router.post("", response_model=TaskResponse)
async def create_task(
    task_in: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = Task()
    _apply(task, task_in)
    db.add(task)
    await db.flush()
    await set_managers(db, task.id, task_in.manager_ids)
    await db.commit()
    await db.refresh(task)
    return await build_task_response(db, task)

@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    type: Optional[str] = None,
    user_id: Optional[str] = None,
    role: str = "manager",
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    query = select(Task).order_by(Task.id)
    if type:
        query = query.where(Task.task_type == normalize_task_type(type).value)
    if user_id and role in MANAGER_ROLES:
        query = query.join(TaskManager, TaskManager.task_id == Task.id).where(TaskManager.user_id == user_id)

    result = await db.execute(query)
    return [await build_task_response(db, task) for task in result.scalars().all()]

@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    return await build_task_response(db, task)

@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    _apply(task, task_in)
    await set_managers(db, task.id, task_in.manager_ids)
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return await build_task_response(db, task)

@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    await delete_task_rows(db, task)
    await db.commit()
    return {"success": True, "id": task_id}
