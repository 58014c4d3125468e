from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from typing import List

from academy.database import get_db
from academy.core.auth import require_roles
from academy.models.group import Group
from academy.models.homework import Homework, HomeworkSubmission
from academy.schemas.homework import (
    HomeworkCreate, HomeworkResponse, SubmissionCreate, SubmissionGrade, SubmissionResponse, GradeResultResponse,
)
from academy.services.rating import refresh_student_standing
from academy.utils.dates import as_utc, utcnow

router = APIRouter(prefix="/homework", tags=["homework"])


@router.post("", response_model=HomeworkResponse, status_code=status.HTTP_201_CREATED)
async def create_homework(
    homework_in: HomeworkCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher"))
):
    if as_utc(homework_in.due_date) <= utcnow():
        raise HTTPException(400, "Due date must be in the future")

    group = await db.get(Group, homework_in.group_id)
    if not group or not group.is_active:
        raise HTTPException(404, "Group not found")

    homework = Homework(
        title=homework_in.title,
        description=homework_in.description,
        group_id=group.id,
        teacher_id=current_user.id,
        due_date=homework_in.due_date,
        is_active=True,
    )
    db.add(homework)
    await db.commit()
    await db.refresh(homework)
    return homework


@router.get("/student", response_model=List[HomeworkResponse])
async def get_my_homework(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("student"))
):
    if current_user.group_id is None:
        return []
    result = await db.execute(
        select(Homework)
        .where(Homework.group_id == current_user.group_id)
        .where(Homework.is_active.is_(True))
        .order_by(Homework.due_date)
    )
    return result.scalars().all()


@router.post("/{homework_id}/submit", response_model=SubmissionResponse)
async def submit_homework(
    homework_id: int,
    submission_in: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("student"))
):
    homework = await db.get(Homework, homework_id)
    if not homework or not homework.is_active or homework.group_id != current_user.group_id:
        raise HTTPException(404, "Homework not found")

    existing = await db.execute(
        select(HomeworkSubmission)
        .where(HomeworkSubmission.homework_id == homework_id)
        .where(HomeworkSubmission.student_id == current_user.id)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(400, "Homework already submitted")

    now = utcnow()
    submission = HomeworkSubmission(
        homework_id=homework_id,
        student_id=current_user.id,
        answer=submission_in.answer,
        status="late" if now > as_utc(homework.due_date) else "submitted",
        submitted_at=now,
    )
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(400, "Homework already submitted")
    await db.refresh(submission)
    return submission


@router.put("/{homework_id}/grade", response_model=GradeResultResponse)
async def grade_homework(
    homework_id: int,
    grade_in: SubmissionGrade,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher"))
):
    homework = await db.get(Homework, homework_id)
    if not homework:
        raise HTTPException(404, "Homework not found")

    result = await db.execute(
        select(HomeworkSubmission)
        .where(HomeworkSubmission.homework_id == homework_id)
        .where(HomeworkSubmission.student_id == grade_in.student_id)
    )
    submission = result.scalar_one_or_none()
    if not submission:
        raise HTTPException(404, "Submission not found")

    submission.total_grade = grade_in.total_grade
    submission.feedback = grade_in.feedback
    submission.status = "graded"
    submission.graded_at = utcnow()
    submission.graded_by_id = current_user.id
    await db.commit()
    await db.refresh(submission)
    graded = SubmissionResponse.model_validate(submission)

    rating, _ = await refresh_student_standing(db, grade_in.student_id, homework.group_id)
    return GradeResultResponse(
        submission=graded,
        total_score=rating.total_score,
        rank_in_group=rating.rank_in_group,
    )
