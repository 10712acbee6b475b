from pydantic import BaseModel, Field
from typing import List

class MonthlyGoalItem(BaseModel):
    month: int = Field(..., ge=1, le=12)
    target_value: float = 0
    actual_value: float = 0
    achievement_rate: float = 0

class YearlyGoalsResponse(BaseModel):
    task_id: int
    year: int
    monthly_goals: List[MonthlyGoalItem]
    total_target: float
    total_actual: float
    total_achievement: float

class MonthlyTargetIn(BaseModel):
    month: int = Field(..., ge=1, le=12)
    target_value: float = Field(..., ge=0)

class YearlyGoalsSave(BaseModel):
    year: int = Field(..., ge=1900, le=2100)
    monthly_goals: List[MonthlyTargetIn]
