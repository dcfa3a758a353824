from pydantic import EmailStr
from typing import Optional
from datetime import datetime
from ..models.user import UserRole
from .common import APIModel
from .department import DepartmentResponse


class UserLogin(APIModel):
    email: EmailStr
    password: str


class Token(APIModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(APIModel):
    refresh_token: str


class UserResponse(APIModel):
    id: int
    name: str
    email: str
    role: UserRole
    department_id: Optional[int] = None
    department: Optional[DepartmentResponse] = None
    created_at: Optional[datetime] = None
