from pydantic import BaseModel, Field
from typing import List, Literal, Optional

Level = Literal["beginner", "elementary", "intermediate", "upper-intermediate", "advanced"]


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    subject: str = "English Language Teaching"
    level: Level = "beginner"
    description: Optional[str] = None
    teacher_id: Optional[int] = None
    max_students: int = Field(25, ge=5, le=50)


class GroupResponse(BaseModel):
    id: int
    name: str
    subject: str
    level: str
    description: Optional[str]
    teacher_id: Optional[int]
    max_students: int
    is_active: bool

    model_config = {"from_attributes": True}


class GroupStudentsAdd(BaseModel):
    student_ids: List[int] = Field(..., min_length=1)
