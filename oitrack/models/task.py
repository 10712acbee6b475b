from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, Boolean, ForeignKey, UniqueConstraint, func
from oitrack.database import Base

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    task_type = Column(String, nullable=False, index=True)    # oi, keyFocus
    category1 = Column(String, nullable=True)                 # top-level theme
    category2 = Column(String, nullable=True)                 # sub theme
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="inProgress")  # inProgress, completed, delayed, stopped
    performance_type = Column(String, nullable=True)          # financial, nonFinancial
    evaluation_type = Column(String, nullable=True)           # quantitative, qualitative
    metric = Column(String, nullable=True)                    # count, amount, percent (quantitative only)
    target_value = Column(Float, nullable=True)               # quantitative only
    reverse_yn = Column(Boolean, nullable=False, default=False)
    dept_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class TaskManager(Base):
    __tablename__ = "task_managers"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)

    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_task_manager"),)
