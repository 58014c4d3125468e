from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, get_current_admin
from academy.models.user import User, parent_children
from academy.schemas.user import UserResponse, ParentLinkCreate, AchievementResponse
from academy.services.points import list_achievements

router = APIRouter(prefix="/users", tags=["users"])


async def is_parent_of(db: AsyncSession, parent_id: int, child_id: int) -> bool:
    link = await db.execute(
        select(parent_children.c.child_id)
        .where(parent_children.c.parent_id == parent_id)
        .where(parent_children.c.child_id == child_id)
    )
    return link.first() is not None


async def ensure_can_view_student(db: AsyncSession, viewer: User, student_id: int) -> None:
    """Students see themselves, parents their children, staff everyone."""
    if viewer.role == "student" and viewer.id != student_id:
        raise HTTPException(403, "Not authorized")
    if viewer.role == "parent" and not await is_parent_of(db, viewer.id, student_id):
        raise HTTPException(403, "Not authorized")


@router.post("/{parent_id}/children", status_code=204)
async def link_child(
    parent_id: int,
    body: ParentLinkCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    parent = await db.get(User, parent_id)
    child = await db.get(User, body.child_id)
    if not parent or parent.role != "parent":
        raise HTTPException(404, "Parent not found")
    if not child or child.role != "student":
        raise HTTPException(404, "Student not found")
    if not await is_parent_of(db, parent_id, body.child_id):
        await db.execute(parent_children.insert().values(parent_id=parent_id, child_id=body.child_id))
        await db.commit()


@router.get("/{parent_id}/children", response_model=List[UserResponse])
async def list_children(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if current_user.role != "admin" and current_user.id != parent_id:
        raise HTTPException(403, "Not authorized")
    result = await db.execute(
        select(User)
        .join(parent_children, parent_children.c.child_id == User.id)
        .where(parent_children.c.parent_id == parent_id)
        .order_by(User.id)
    )
    return result.scalars().all()


@router.get("/{student_id}/achievements", response_model=List[AchievementResponse])
async def get_achievements(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await ensure_can_view_student(db, current_user, student_id)
    return await list_achievements(db, student_id)
