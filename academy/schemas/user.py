from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional
from datetime import datetime

Role = Literal["student", "teacher", "parent", "admin"]


class UserCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = "student"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    is_active: bool
    group_id: Optional[int]
    points: int

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserResponse


class ParentLinkCreate(BaseModel):
    child_id: int


class AchievementResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    earned_at: datetime

    model_config = {"from_attributes": True}
