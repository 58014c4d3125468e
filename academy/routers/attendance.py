from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.models.attendance import ClassAttendance
from academy.models.group import Group
from academy.models.user import User
from academy.routers.users import ensure_can_view_student
from academy.schemas.attendance import ClassSessionCreate, ClassSessionResponse, AttendanceResponse
from academy.services.rating import recompute_rating, resolve_group_ranking

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/sessions", response_model=ClassSessionResponse)
async def mark_session(
    session_in: ClassSessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher"))
):
    """
    Record attendance and participation for one class session.
    Marking the same student and date again overwrites the earlier entry.
    """
    group = await db.get(Group, session_in.group_id)
    if not group or not group.is_active:
        raise HTTPException(404, "Group not found")

    student_ids = {record.student_id for record in session_in.records}
    if len(student_ids) != len(session_in.records):
        raise HTTPException(400, "Each student can only be marked once per session")
    members = await db.execute(
        select(User.id)
        .where(User.id.in_(student_ids))
        .where(User.role == "student")
        .where(User.group_id == group.id)
    )
    if set(members.scalars().all()) != student_ids:
        raise HTTPException(400, "All students must belong to the group")

    existing = await db.execute(
        select(ClassAttendance)
        .where(ClassAttendance.group_id == group.id)
        .where(ClassAttendance.session_date == session_in.session_date)
        .where(ClassAttendance.student_id.in_(student_ids))
    )
    by_student = {row.student_id: row for row in existing.scalars().all()}

    rows = []
    for mark in session_in.records:
        row = by_student.get(mark.student_id)
        if row is None:
            row = ClassAttendance(
                student_id=mark.student_id,
                group_id=group.id,
                session_date=session_in.session_date,
            )
            db.add(row)
        row.present = mark.present
        row.participation = mark.participation if mark.present else None
        row.marked_by_id = current_user.id
        rows.append(row)
    await db.commit()
    records = [AttendanceResponse.model_validate(row) for row in rows]

    for student_id in sorted(student_ids):
        await recompute_rating(db, student_id, group.id)
    await resolve_group_ranking(db, group.id)

    return ClassSessionResponse(
        group_id=group.id,
        session_date=session_in.session_date,
        records=records,
    )


@router.get("/student/{student_id}", response_model=List[AttendanceResponse])
async def get_student_attendance(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await ensure_can_view_student(db, current_user, student_id)
    result = await db.execute(
        select(ClassAttendance)
        .where(ClassAttendance.student_id == student_id)
        .order_by(ClassAttendance.session_date.desc())
    )
    return result.scalars().all()
