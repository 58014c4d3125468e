from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class HomeworkCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None
    group_id: int
    due_date: datetime


class HomeworkResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    group_id: int
    teacher_id: int
    due_date: datetime
    is_active: bool

    model_config = {"from_attributes": True}


class SubmissionCreate(BaseModel):
    answer: Optional[str] = None


class SubmissionGrade(BaseModel):
    student_id: int
    total_grade: float = Field(..., ge=0, le=10)
    feedback: Optional[str] = None


class SubmissionResponse(BaseModel):
    id: int
    homework_id: int
    student_id: int
    answer: Optional[str]
    status: str
    total_grade: Optional[float]
    feedback: Optional[str]
    submitted_at: datetime
    graded_at: Optional[datetime]

    model_config = {"from_attributes": True}


class GradeResultResponse(BaseModel):
    submission: SubmissionResponse
    total_score: int
    rank_in_group: int
