from datetime import datetime
from typing import Any, List, Optional

from pydantic import EmailStr, Field

from .auth import UserResponse
from .common import APIModel, Envelope
from .department import DepartmentResponse


class EmployeeCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    department_id: Optional[int] = None
    gender: Optional[str] = Field(None, max_length=32)


class EmployeeResponse(APIModel):
    id: int
    user_id: int
    bio: Optional[str] = None
    skills: List[str] = []
    photo_url: Optional[str] = None
    resume_url: Optional[str] = None
    gender: Optional[str] = None
    department_id: Optional[int] = None
    department: Optional[DepartmentResponse] = None
    updated_at: Optional[datetime] = None


class ProfileEnvelope(Envelope):
    user: UserResponse
    employee: Optional[EmployeeResponse] = None


class ResumeEnvelope(Envelope):
    resume_url: str


class GroupCount(APIModel):
    key: Optional[Any] = None
    label: Optional[str] = None
    count: int


class AnalyticsEnvelope(Envelope):
    gender_stats: List[GroupCount]
    department_stats: List[GroupCount]
    total: int
