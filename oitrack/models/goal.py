from sqlalchemy import Column, Integer, Float, ForeignKey, UniqueConstraint
from oitrack.database import Base

class MonthlyGoal(Base):
    """Per-month target override; months without a row use the apportioned task target."""
    __tablename__ = "monthly_goals"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    target_value = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint("task_id", "year", "month", name="uq_goal_task_year_month"),
    )
