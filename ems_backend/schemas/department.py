from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from .common import APIModel, Envelope


class DepartmentCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Department name is required")
        return v


class DepartmentUpdate(DepartmentCreate):
    pass


class DepartmentResponse(APIModel):
    id: int
    name: str
    created_at: Optional[datetime] = None


class DepartmentEnvelope(Envelope):
    department: DepartmentResponse


class DepartmentListEnvelope(Envelope):
    departments: List[DepartmentResponse]
