from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class Prize(BaseModel):
    position: int = Field(..., ge=1)
    title: Optional[str] = None
    description: Optional[str] = None
    points: int = Field(0, ge=0)
    gift: Optional[str] = None


class CompetitionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    eligible_group_ids: List[int] = []
    rules: List[str] = []
    prizes: List[Prize] = []


class ParticipantResponse(BaseModel):
    student_id: int
    score: float
    registered_at: datetime

    model_config = {"from_attributes": True}


class WinnerResponse(BaseModel):
    student_id: int
    position: int
    prize: Optional[str]
    points_awarded: int
    announced_at: datetime

    model_config = {"from_attributes": True}


class CompetitionResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    start_date: datetime
    end_date: datetime
    status: str
    eligible_group_ids: List[int]
    rules: List[str]
    prizes: List[Prize]
    participant_count: int
    winners: List[WinnerResponse]


class ScoreUpdate(BaseModel):
    student_id: int
    score: float = Field(..., ge=0)


class Placement(BaseModel):
    student_id: int
    position: int = Field(..., ge=1)


class WinnersAnnounce(BaseModel):
    winners: List[Placement] = Field(..., min_length=1)
