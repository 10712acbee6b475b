# oitrack/ledger/records.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from oitrack.ledger.metrics import Metric, TaskStatus, normalize_metric, normalize_status


class LedgerTask(BaseModel):
    """The slice of a task the ledger needs."""
    id: int
    name: str = ""
    evaluation_type: str = "quantitative"
    metric: Metric = Metric.PERCENT
    target_value: float = 0
    reverse_yn: bool = False
    status: TaskStatus = TaskStatus.IN_PROGRESS
    manager_ids: List[str] = []

    @field_validator("metric", mode="before")
    @classmethod
    def _metric(cls, v):
        return normalize_metric(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return normalize_status(v)

    @field_validator("target_value", mode="before")
    @classmethod
    def _target(cls, v):
        return v or 0

    @property
    def is_quantitative(self) -> bool:
        return self.evaluation_type == "quantitative"


class Attachment(BaseModel):
    file_name: str
    url: Optional[str] = None


class MonthlyActivityRecord(BaseModel):
    task_id: int
    year: int
    month: int = Field(..., ge=1, le=12)
    activity_id: Optional[int] = None
    activity_content: Optional[str] = None
    actual_value: Optional[float] = None
    status: Optional[TaskStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return normalize_status(v) if v is not None else None


class ActivitySubmission(BaseModel):
    activity_content: str
    actual_value: Optional[float] = None
    status: Optional[TaskStatus] = None
    attachments: List[Attachment] = []


class SavedRecord(BaseModel):
    activity_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class YearlyGoal(BaseModel):
    month: int
    target_value: float = 0
    actual_value: float = 0
    achievement_rate: float = 0


def zero_goals() -> List[YearlyGoal]:
    return [YearlyGoal(month=m) for m in range(1, 13)]
