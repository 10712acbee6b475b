# oitrack/core/identity.py
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from oitrack.database import get_db
from oitrack.models.user import User

async def get_current_user(
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None),
):
    """
    Resolve the acting user from the X-User-Id header.
    Sign-in happens in front of this service; only the identity reaches us.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )

    result = await db.execute(select(User).where(User.id == x_user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


async def get_current_admin(
    current_user = Depends(get_current_user)
):
    if current_user.role != "admin":
        raise HTTPException(403, "Admin access required")
    return current_user
