from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.database import get_db
from oitrack.core.identity import get_current_user
from oitrack.models.goal import MonthlyGoal
from oitrack.schemas.goal import YearlyGoalsResponse, YearlyGoalsSave
from oitrack.services.performance import get_yearly_goals
from oitrack.services.tasks import get_manager_ids, get_task_or_404, require_manager, to_ledger_task

router = APIRouter(prefix="/tasks", tags=["yearly-goals"])

@router.get("/{task_id}/yearly-goals", response_model=YearlyGoalsResponse)
async def get_task_yearly_goals(
    task_id: int,
    year: int = None,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    if year is None:
        year = datetime.now().year
    if year < 1900 or year > 2100:
        raise HTTPException(400, "Invalid year")

    ledger_task = to_ledger_task(task, await get_manager_ids(db, task_id))
    return await get_yearly_goals(db, ledger_task, year)

@router.post("/{task_id}/yearly-goals", response_model=YearlyGoalsResponse)
async def save_task_yearly_goals(
    task_id: int,
    goals_in: YearlyGoalsSave,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await get_task_or_404(db, task_id)
    await require_manager(db, task, current_user)

    existing = await db.execute(
        select(MonthlyGoal)
        .where(MonthlyGoal.task_id == task_id)
        .where(MonthlyGoal.year == goals_in.year)
    )
    by_month = {g.month: g for g in existing.scalars()}

    for item in goals_in.monthly_goals:
        goal = by_month.get(item.month)
        if goal is None:
            goal = MonthlyGoal(task_id=task_id, year=goals_in.year, month=item.month)
            by_month[item.month] = goal
        goal.target_value = item.target_value
        db.add(goal)

    await db.commit()
    ledger_task = to_ledger_task(task, await get_manager_ids(db, task_id))
    return await get_yearly_goals(db, ledger_task, goals_in.year)
