from pydantic import BaseModel
from typing import Optional

class DepartmentResponse(BaseModel):
    id: int
    name: str
    parent_id: Optional[int]

    model_config = {"from_attributes": True}

class UserResponse(BaseModel):
    id: str
    name: str
    email: Optional[str]
    role: str
    dept_id: Optional[int]

    model_config = {"from_attributes": True}

class ManagerResponse(BaseModel):
    user_id: str
    name: str
    dept_name: Optional[str] = None
    top_dept_name: Optional[str] = None
