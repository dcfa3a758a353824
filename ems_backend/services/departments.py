from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, NotFound
from ..models.department import Department
from ..models.employee import Employee
from ..models.user import User


def _ensure_name_free(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(Department).filter(Department.name == name)
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first():
        raise Conflict("Department already exists")


def _commit_unique(db: Session) -> None:
    """Commit, turning a lost race on the unique name into Conflict."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Department already exists")


def create_department(db: Session, name: str) -> Department:
    _ensure_name_free(db, name)
    department = Department(name=name)
    db.add(department)
    _commit_unique(db)
    db.refresh(department)
    return department


def list_departments(db: Session) -> List[Department]:
    """Newest first."""
    return (
        db.query(Department)
        .order_by(Department.created_at.desc(), Department.id.desc())
        .all()
    )


def get_department(db: Session, department_id: int) -> Department:
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise NotFound("Department not found")
    return department


def update_department(db: Session, department_id: int, name: str) -> Department:
    department = get_department(db, department_id)
    if department.name != name:
        _ensure_name_free(db, name, exclude_id=department.id)
        department.name = name
        _commit_unique(db)
        db.refresh(department)
    return department


def delete_department(db: Session, department_id: int) -> Department:
    """Delete and return the removed department (attributes stay loaded)."""
    department = get_department(db, department_id)
    # Detach members explicitly; SQLite does not enforce ON DELETE SET NULL by default
    for model in (User, Employee):
        db.query(model).filter(model.department_id == department.id).update(
            {model.department_id: None}, synchronize_session=False
        )
    db.delete(department)
    db.commit()
    return department
