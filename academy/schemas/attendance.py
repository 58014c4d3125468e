from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional


class AttendanceMark(BaseModel):
    student_id: int
    present: bool = True
    participation: Optional[int] = Field(None, ge=0, le=10)


class ClassSessionCreate(BaseModel):
    group_id: int
    session_date: date
    records: List[AttendanceMark] = Field(..., min_length=1)


class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    group_id: int
    session_date: date
    present: bool
    participation: Optional[int]

    model_config = {"from_attributes": True}


class ClassSessionResponse(BaseModel):
    group_id: int
    session_date: date
    records: List[AttendanceResponse]
