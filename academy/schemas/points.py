from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional

from academy.schemas.user import AchievementResponse


class BonusTaskComplete(BaseModel):
    proof: Optional[str] = None
    notes: Optional[str] = None


class BonusTaskResponse(BaseModel):
    id: int
    title: str
    description: str
    points: int
    type: str
    category: str
    difficulty: str
    time_limit_hours: int
    requirements: List[str]
    completed: bool
    completed_at: Optional[datetime]


class BonusTaskListResponse(BaseModel):
    tasks: List[BonusTaskResponse]
    total_available: int
    total_completed: int
    total_points: int


class BonusTaskCompleteResponse(BaseModel):
    points_earned: int
    total_points: int
    new_achievements: List[AchievementResponse]

    model_config = {"from_attributes": True}


class LeaderboardEntry(BaseModel):
    rank: int
    student_id: int
    name: str
    points: int
    completed_tasks: int


class PointsAdjust(BaseModel):
    amount: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1, max_length=200)
    kind: Literal["adjustment", "competition"] = "adjustment"


class BalanceResponse(BaseModel):
    student_id: int
    points: int


class PointTransactionResponse(BaseModel):
    id: int
    amount: int
    kind: str
    reference: Optional[str]
    reason: Optional[str]
    balance_after: int
    created_at: datetime

    model_config = {"from_attributes": True}
