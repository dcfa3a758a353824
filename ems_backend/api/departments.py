from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..api.auth import get_current_user
from ..db import get_db
from ..models.user import User
from ..schemas.department import (
    DepartmentCreate,
    DepartmentEnvelope,
    DepartmentListEnvelope,
    DepartmentResponse,
    DepartmentUpdate,
)
from ..services import departments as service

router = APIRouter()


def _envelope(department) -> DepartmentEnvelope:
    return DepartmentEnvelope(department=DepartmentResponse.model_validate(department))


@router.post("", response_model=DepartmentEnvelope, status_code=status.HTTP_201_CREATED)
def add_department(
    payload: DepartmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a department; names are unique"""
    return _envelope(service.create_department(db, payload.name))


@router.get("", response_model=DepartmentListEnvelope)
def get_departments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List departments, newest first"""
    departments = service.list_departments(db)
    return DepartmentListEnvelope(
        departments=[DepartmentResponse.model_validate(d) for d in departments]
    )


@router.get("/{department_id}", response_model=DepartmentEnvelope)
def get_department(
    department_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _envelope(service.get_department(db, department_id))


@router.put("/{department_id}", response_model=DepartmentEnvelope)
def update_department(
    department_id: int,
    payload: DepartmentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _envelope(service.update_department(db, department_id, payload.name))


@router.delete("/{department_id}", response_model=DepartmentEnvelope)
def delete_department(
    department_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a department; members are left without one"""
    return _envelope(service.delete_department(db, department_id))
