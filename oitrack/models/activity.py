from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, UniqueConstraint, func
from oitrack.database import Base

class MonthlyActivity(Base):
    __tablename__ = "monthly_activities"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)  # last writer
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    activity_content = Column(Text, nullable=False)
    actual_value = Column(Float, nullable=True)  # meaning depends on the task metric
    status = Column(String, nullable=True)       # task status snapshot
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("task_id", "year", "month", name="uq_task_year_month"),
    )

class ActivityAttachment(Base):
    __tablename__ = "activity_attachments"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, ForeignKey("monthly_activities.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String, nullable=False)
    url = Column(String, nullable=True)  # metadata only, files live elsewhere
    created_at = Column(DateTime(timezone=True), server_default=func.now())
