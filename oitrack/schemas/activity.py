from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from oitrack.ledger.metrics import Metric, TaskStatus, normalize_status
from oitrack.ledger.records import Attachment

class ActivityCreate(BaseModel):
    activity_content: str = Field(..., min_length=1)
    actual_value: Optional[float] = Field(None, ge=0)
    status: Optional[TaskStatus] = None
    attachments: List[Attachment] = []

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        return normalize_status(v) if v is not None else None

class ActivitySaveResponse(BaseModel):
    activity_id: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

class AttachmentResponse(BaseModel):
    id: int
    file_name: str
    url: Optional[str]

    model_config = {"from_attributes": True}

class ActivityResponse(BaseModel):
    activity_id: int
    task_id: int
    year: int
    month: int
    activity_content: str
    actual_value: Optional[float]
    status: Optional[TaskStatus]
    user_id: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    attachments: List[AttachmentResponse] = []

class AchievementPreview(BaseModel):
    year: int
    month: int
    metric: Metric
    unit: str
    target_value: float
    actual_value: float
    achievement_rate: float
    color: str
