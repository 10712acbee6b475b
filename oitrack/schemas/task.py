from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime
from typing import Optional, List
from oitrack.ledger.metrics import Metric, TaskStatus, TaskType, normalize_metric, normalize_status, normalize_task_type
from oitrack.schemas.user import ManagerResponse

class TaskCreate(BaseModel):
    task_type: TaskType
    category1: Optional[str] = None
    category2: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: TaskStatus = TaskStatus.IN_PROGRESS
    performance_type: Optional[str] = Field(None, pattern="^(financial|nonFinancial)$")
    evaluation_type: str = Field("quantitative", pattern="^(quantitative|qualitative)$")
    metric: Optional[Metric] = None
    target_value: Optional[float] = Field(None, ge=0)
    reverse_yn: bool = False
    dept_id: Optional[int] = None
    manager_ids: List[str] = []

    @field_validator("task_type", mode="before")
    @classmethod
    def _task_type(cls, v):
        return normalize_task_type(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return normalize_status(v)

    @field_validator("metric", mode="before")
    @classmethod
    def _metric(cls, v):
        return normalize_metric(v) if v is not None else None

    @model_validator(mode="after")
    def _check(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        # metric and target only mean something for quantitative tasks
        if self.evaluation_type != "quantitative":
            self.metric = None
            self.target_value = None
            self.reverse_yn = False
        elif self.metric is None:
            self.metric = Metric.PERCENT
        return self

class TaskUpdate(TaskCreate):
    pass

class TaskResponse(BaseModel):
    id: int
    task_type: TaskType
    category1: Optional[str]
    category2: Optional[str]
    name: str
    description: Optional[str]
    start_date: date
    end_date: date
    status: TaskStatus
    status_text: str
    performance_type: Optional[str]
    evaluation_type: Optional[str]
    metric: Optional[Metric]
    unit: Optional[str]
    target_value: Optional[float]
    reverse_yn: bool
    dept_id: Optional[int]
    managers: List[ManagerResponse]
    is_inputted: bool
    achievement_rate: float
    created_at: Optional[datetime]
