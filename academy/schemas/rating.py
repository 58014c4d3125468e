from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class MonthlyStatResponse(BaseModel):
    month: int
    year: int
    grades: float
    attendance: float
    homework_completion: float
    class_participation: float
    total_score: int

    model_config = {"from_attributes": True}


class RatingResponse(BaseModel):
    id: int
    student_id: int
    group_id: int
    grades: float
    attendance: float
    homework_completion: float
    class_participation: float
    total_score: int
    rank_in_group: int
    total_homeworks: int
    completed_homeworks: int
    total_classes: int
    attended_classes: int
    participation_count: int
    average_grade: float
    last_updated: Optional[datetime]
    monthly_stats: List[MonthlyStatResponse] = []

    model_config = {"from_attributes": True}


class StudentRatingResponse(BaseModel):
    rating: RatingResponse
    group_rankings: List[RatingResponse]


class SnapshotRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class SnapshotResponse(BaseModel):
    group_id: int
    month: int
    year: int
    created: int
