from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.routers.users import ensure_can_view_student
from academy.schemas.points import BalanceResponse, PointsAdjust, PointTransactionResponse
from academy.services.points import credit_points, current_balance, debit_points, point_history

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/{student_id}", response_model=BalanceResponse)
async def get_balance(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await ensure_can_view_student(db, current_user, student_id)
    return BalanceResponse(student_id=student_id, points=await current_balance(db, student_id))


@router.get("/{student_id}/history", response_model=List[PointTransactionResponse])
async def get_history(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    await ensure_can_view_student(db, current_user, student_id)
    return await point_history(db, student_id)


@router.post("/{student_id}/credit", response_model=BalanceResponse)
async def credit(
    student_id: int,
    body: PointsAdjust,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    balance = await credit_points(
        db, student_id, body.amount, body.kind,
        reference=f"user:{current_user.id}", reason=body.reason,
    )
    return BalanceResponse(student_id=student_id, points=balance)


@router.post("/{student_id}/debit", response_model=BalanceResponse)
async def debit(
    student_id: int,
    body: PointsAdjust,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("admin"))
):
    balance = await debit_points(db, student_id, body.amount, body.reason, reference=f"user:{current_user.id}")
    return BalanceResponse(student_id=student_id, points=balance)
