from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.schemas.points import (
    BonusTaskComplete, BonusTaskCompleteResponse, BonusTaskListResponse, LeaderboardEntry,
)
from academy.schemas.user import AchievementResponse
from academy.services.points import bonus_leaderboard, complete_bonus_task, list_bonus_tasks

router = APIRouter(prefix="/bonus-tasks", tags=["bonus-tasks"])


@router.get("", response_model=BonusTaskListResponse)
async def get_bonus_tasks(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await list_bonus_tasks(db, current_user.id)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await bonus_leaderboard(db, limit)


@router.post("/{task_id}/complete", response_model=BonusTaskCompleteResponse)
async def complete_task(
    task_id: int,
    body: BonusTaskComplete,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("student"))
):
    result = await complete_bonus_task(db, current_user.id, task_id, body.proof, body.notes)
    return BonusTaskCompleteResponse(
        points_earned=result.points_earned,
        total_points=result.total_points,
        new_achievements=[AchievementResponse.model_validate(a) for a in result.new_achievements],
    )
