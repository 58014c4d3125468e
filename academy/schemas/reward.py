from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

Category = Literal["stationery", "books", "electronics", "certificates", "other"]


class RewardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    points_required: int = Field(..., ge=1)
    order: int = Field(..., ge=1)
    category: Category = "other"
    image: Optional[str] = None


class RewardResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    points_required: int
    order: int
    category: str
    image: Optional[str]
    is_active: bool

    model_config = {"from_attributes": True}


class RewardListItem(BaseModel):
    reward: RewardResponse
    claimed: Optional[bool] = None
    claim_status: Optional[str] = None
    unlocked: Optional[bool] = None
    can_claim: Optional[bool] = None


class ClaimResponse(BaseModel):
    id: int
    reward_id: int
    student_id: int
    status: str
    points_spent: int
    claimed_at: datetime

    model_config = {"from_attributes": True}


class ClaimStatusUpdate(BaseModel):
    status: Literal["delivered", "cancelled"]
