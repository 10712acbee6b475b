from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from oitrack.ledger.metrics import TaskType, normalize_task_type

class NotInputtedTask(BaseModel):
    task_id: int
    task_name: str
    task_type: TaskType
    manager_ids: List[str]
    manager_names: List[str]

class NotificationSend(BaseModel):
    task_type: TaskType
    task_ids: List[int] = Field(..., min_length=1)

    @field_validator("task_type", mode="before")
    @classmethod
    def _task_type(cls, v):
        return normalize_task_type(v)

class NotificationSendResult(BaseModel):
    success: bool
    count: int
    message: Optional[str] = None

class NotificationResponse(BaseModel):
    id: int
    task_id: int
    recipient_id: str
    sender_id: Optional[str]
    task_type: str
    message: str
    status: str
    resend_count: int
    sent_at: Optional[datetime]
    read_at: Optional[datetime]

    model_config = {"from_attributes": True}

class NotificationPage(BaseModel):
    content: List[NotificationResponse]
    total_pages: int
    total_elements: int
    current_page: int

class UnreadCount(BaseModel):
    count: int
