from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user, require_roles
from academy.schemas.reward import (
    ClaimResponse, ClaimStatusUpdate, RewardCreate, RewardListItem, RewardResponse,
)
from academy.services.rewards import claim_reward, create_reward, list_claims, list_rewards, update_claim_status

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("", response_model=List[RewardListItem])
async def get_rewards(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await list_rewards(db, current_user)


@router.post("", response_model=RewardResponse, status_code=status.HTTP_201_CREATED)
async def add_reward(
    reward_in: RewardCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    return await create_reward(db, **reward_in.model_dump())


@router.post("/{reward_id}/claim", response_model=ClaimResponse)
async def claim(
    reward_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("student"))
):
    return await claim_reward(db, current_user.id, reward_id)


@router.get("/{reward_id}/claims", response_model=List[ClaimResponse])
async def get_claims(
    reward_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    return await list_claims(db, reward_id)


@router.put("/claims/{claim_id}", response_model=ClaimResponse)
async def set_claim_status(
    claim_id: int,
    body: ClaimStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(require_roles("teacher", "admin"))
):
    return await update_claim_status(db, claim_id, body.status)
