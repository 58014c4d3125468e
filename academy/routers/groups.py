from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, get_current_admin, require_roles
from academy.models.group import Group
from academy.models.user import User
from academy.schemas.group import GroupCreate, GroupResponse, GroupStudentsAdd
from academy.schemas.rating import RatingResponse
from academy.services.rating import create_initial_rating, drop_rating, resolve_group_ranking

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_in: GroupCreate,
    db: AsyncSession = Depends(get_db),
    admin = Depends(get_current_admin)
):
    existing = await db.execute(select(Group).where(Group.name == group_in.name))
    if existing.scalar_one_or_none():
        raise HTTPException(400, "Group name already taken")

    if group_in.teacher_id:
        teacher = await db.get(User, group_in.teacher_id)
        if not teacher or teacher.role != "teacher":
            raise HTTPException(400, "Teacher not found")

    group = Group(**group_in.model_dump(), is_active=True)
    db.add(group)
    await db.commit()
    await db.refresh(group)
    return group


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    query = select(Group).where(Group.is_active.is_(True)).order_by(Group.name)
    if current_user.role == "teacher":
        query = query.where(Group.teacher_id == current_user.id)
    elif current_user.role == "student":
        query = query.where(Group.id == current_user.group_id)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/{group_id}/students", response_model=List[RatingResponse])
async def add_students(
    group_id: int,
    body: GroupStudentsAdd,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("admin", "teacher"))
):
    """Move students into the group; each gets a zeroed rating for it."""
    group = await db.get(Group, group_id)
    if not group or not group.is_active:
        raise HTTPException(404, "Group not found")

    student_ids = set(body.student_ids)
    result = await db.execute(
        select(User).where(User.id.in_(student_ids)).where(User.role == "student")
    )
    students = result.scalars().all()
    if len(students) != len(student_ids):
        raise HTTPException(400, "One or more students not found")

    current_size = await db.scalar(
        select(func.count(User.id)).where(User.group_id == group_id).where(User.role == "student")
    )
    joining = [s for s in students if s.group_id != group_id]
    if current_size + len(joining) > group.max_students:
        raise HTTPException(400, f"Group is limited to {group.max_students} students")

    # A rating belongs to one group; leaving drops it
    left_groups = set()
    for student in joining:
        if student.group_id is not None:
            left_groups.add(student.group_id)
            await drop_rating(db, student.id, student.group_id)
        student.group_id = group_id
    await db.commit()

    for old_group_id in sorted(left_groups):
        await resolve_group_ranking(db, old_group_id)

    ratings = []
    for student in sorted(students, key=lambda s: s.id):
        ratings.append(await create_initial_rating(db, student.id, group_id))
    return ratings
