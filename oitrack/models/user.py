from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from oitrack.database import Base

class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("departments.id"), nullable=True)  # NULL = top department

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)  # employee id
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False, default="staff")  # staff, admin
    dept_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
