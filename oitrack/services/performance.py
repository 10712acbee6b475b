from typing import Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.models.activity import MonthlyActivity
from oitrack.models.goal import MonthlyGoal
from oitrack.schemas.goal import MonthlyGoalItem, YearlyGoalsResponse
from oitrack.ledger.achievement import Achievement, MonthValue, achievement_rate, calculate_achievement
from oitrack.ledger.metrics import Metric
from oitrack.ledger.records import LedgerTask

def apportioned_target(task: LedgerTask, month: int, overrides: Dict[int, float]) -> float:
    """Monthly target: stored override, else the task target (percent) or an even 1/12 share."""
    if month in overrides:
        return overrides[month]
    if task.metric == Metric.PERCENT:
        return task.target_value
    return task.target_value / 12

async def get_monthly_actuals(db: AsyncSession, task_id: int, year: int) -> Dict[int, float]:
    result = await db.execute(
        select(MonthlyActivity.month, MonthlyActivity.actual_value)
        .where(MonthlyActivity.task_id == task_id)
        .where(MonthlyActivity.year == year)
    )
    return {month: (value or 0.0) for month, value in result.fetchall()}

async def get_target_overrides(db: AsyncSession, task_id: int, year: int) -> Dict[int, float]:
    result = await db.execute(
        select(MonthlyGoal.month, MonthlyGoal.target_value)
        .where(MonthlyGoal.task_id == task_id)
        .where(MonthlyGoal.year == year)
    )
    return {month: value for month, value in result.fetchall()}

async def year_to_date_achievement(
    db: AsyncSession, task: LedgerTask, year: int, month: int, current_value=None
) -> Achievement:
    """
    Achievement for the whole year with `month` as the month under edit.
    Every other month of the year contributes its persisted value, as in
    the ledger view. When current_value is given it stands in for whatever
    is persisted for `month`.
    """
    actuals = await get_monthly_actuals(db, task.id, year)

    if current_value is None:
        if task.metric == Metric.PERCENT:
            # latest snapshot entered up to this month
            entered = [m for m in actuals if m <= month]
            current_value = actuals[max(entered)] if entered else 0
        else:
            current_value = actuals.get(month, 0)

    others = [MonthValue(month=m, actual_value=v) for m, v in actuals.items() if m != month]
    return calculate_achievement(
        task.metric,
        task.target_value,
        current_value,
        others,
        reverse_yn=task.reverse_yn,
    )

async def get_yearly_goals(db: AsyncSession, task: LedgerTask, year: int) -> YearlyGoalsResponse:
    actuals = await get_monthly_actuals(db, task.id, year)
    overrides = await get_target_overrides(db, task.id, year)

    goals = []
    for month in range(1, 13):
        target = apportioned_target(task, month, overrides)
        actual = actuals.get(month, 0.0)
        goals.append(
            MonthlyGoalItem(
                month=month,
                target_value=round(target, 2),
                actual_value=actual,
                achievement_rate=round(achievement_rate(target, actual, task.reverse_yn), 1),
            )
        )

    if task.metric == Metric.PERCENT:
        total_target = task.target_value
        total_actual = actuals[max(actuals)] if actuals else 0.0
    else:
        total_target = sum(g.target_value for g in goals)
        total_actual = sum(actuals.values())

    return YearlyGoalsResponse(
        task_id=task.id,
        year=year,
        monthly_goals=goals,
        total_target=round(total_target, 2),
        total_actual=total_actual,
        total_achievement=round(achievement_rate(total_target, total_actual, task.reverse_yn), 1),
    )
