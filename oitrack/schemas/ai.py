from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from oitrack.ledger.metrics import TaskType, normalize_task_type

class TextIn(BaseModel):
    text: str = Field(..., min_length=1)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, v):
        if not v.strip():
            raise ValueError("text must not be blank")
        return v

class RecommendIn(BaseModel):
    task_name: str = Field(..., min_length=1)
    previous_activities: str = ""

class AiResult(BaseModel):
    result: str

class ReportActivity(BaseModel):
    year: int
    month: int
    activity_content: str

class ReportTask(BaseModel):
    task_name: str
    status: Optional[str] = None
    achievement_rate: Optional[float] = None
    activities: List[ReportActivity] = []

class ReportIn(BaseModel):
    task_type: TaskType
    tasks: List[ReportTask] = Field(..., min_length=1)
    format: str = Field("markdown", pattern="^(markdown|html)$")

    @field_validator("task_type", mode="before")
    @classmethod
    def _task_type(cls, v):
        return normalize_task_type(v)

class CustomReportIn(ReportIn):
    report_type: str = Field(..., pattern="^(monthly|comprehensive)$")
    previous_report: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)

class BriefingIn(BaseModel):
    tasks: List[ReportTask] = Field(..., min_length=1)

class BriefingResponse(BaseModel):
    summary: str
    highlights: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []
