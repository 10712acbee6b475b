from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.database import get_db
from oitrack.core.identity import get_current_user
from oitrack.models.user import Department, User
from oitrack.schemas.user import DepartmentResponse, UserResponse

router = APIRouter(prefix="/departments", tags=["departments"])

@router.get("", response_model=List[DepartmentResponse])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(select(Department).order_by(Department.id))
    return result.scalars().all()

@router.get("/{dept_id}/members", response_model=List[UserResponse])
async def list_members(
    dept_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    dept = await db.execute(select(Department).where(Department.id == dept_id))
    if not dept.scalar_one_or_none():
        raise HTTPException(404, "Department not found")

    result = await db.execute(
        select(User).where(User.dept_id == dept_id).order_by(User.name)
    )
    return result.scalars().all()
