# academy/routers/ratings.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.models.user import User
from academy.routers.users import ensure_can_view_student
from academy.schemas.rating import (
    RatingResponse, StudentRatingResponse, SnapshotRequest, SnapshotResponse,
)
from academy.services.rating import recompute_rating, resolve_group_ranking, snapshot_month

router = APIRouter(prefix="/ratings", tags=["ratings"])


async def _student_in_group(db: AsyncSession, student_id: int) -> User:
    student = await db.get(User, student_id)
    if not student or student.role != "student":
        raise HTTPException(404, "Student not found")
    if student.group_id is None:
        raise HTTPException(404, "Student is not in a group")
    return student


@router.get("/student/{student_id}", response_model=StudentRatingResponse)
async def get_student_rating(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await ensure_can_view_student(db, current_user, student_id)
    student = await _student_in_group(db, student_id)

    ranking = await resolve_group_ranking(db, student.group_id)
    current = next((r for r in ranking if r.student_id == student_id), None)
    if current is None:
        raise HTTPException(404, "Rating not found")
    return StudentRatingResponse(rating=current, group_rankings=ranking)


@router.post("/student/{student_id}/recompute", response_model=RatingResponse)
async def recompute_student_rating(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    student = await _student_in_group(db, student_id)
    await recompute_rating(db, student_id, student.group_id)
    ranking = await resolve_group_ranking(db, student.group_id)
    return next(r for r in ranking if r.student_id == student_id)


@router.get("/group/{group_id}", response_model=List[RatingResponse])
async def get_group_rankings(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    return await resolve_group_ranking(db, group_id)


@router.post("/group/{group_id}/snapshot", response_model=SnapshotResponse)
async def close_month(
    group_id: int,
    body: SnapshotRequest,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    created = await snapshot_month(db, group_id, body.month, body.year)
    return SnapshotResponse(group_id=group_id, month=body.month, year=body.year, created=created)
