from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, Forbidden, NotFound
from ..core.security import get_password_hash
from ..models.department import Department
from ..models.employee import Employee
from ..models.user import User, UserRole
from ..schemas.employee import EmployeeCreate
from .profile import upsert_employee


def _employee_for(db: Session, user_id: int) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.user_id == user_id).first()


def get_own_profile(db: Session, actor: User) -> Tuple[User, Employee]:
    """Caller's user and employee records; both must exist."""
    user = db.query(User).filter(User.id == actor.id).first()
    employee = _employee_for(db, actor.id)
    if not user or not employee:
        raise NotFound("Profile not found")
    return user, employee


def get_profile(db: Session, user_id: int) -> Tuple[User, Optional[Employee]]:
    """Admin view: the employee record may legitimately be missing."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user, _employee_for(db, user_id)


def get_resume_url(db: Session, actor: User, user_id: int) -> str:
    # Authorization first so a 404 never reveals anything to outsiders
    if not actor.is_admin and actor.id != user_id:
        raise Forbidden("Unauthorized")

    employee = (
        db.query(Employee)
        .join(User, User.id == Employee.user_id)
        .filter(Employee.user_id == user_id)
        .first()
    )
    if not employee or not employee.resume_url:
        raise NotFound("Resume not found")
    return employee.resume_url


def create_employee(db: Session, data: EmployeeCreate) -> Tuple[User, Employee]:
    if db.query(User.id).filter(User.email == data.email).first():
        raise Conflict("Email already registered")
    if data.department_id is not None:
        if not db.query(Department.id).filter(Department.id == data.department_id).first():
            raise NotFound("Department not found")

    user = User(
        name=data.name,
        email=data.email,
        password_hash=get_password_hash(data.password),
        role=UserRole.EMPLOYEE,
        department_id=data.department_id,
    )
    db.add(user)
    try:
        db.flush()
        employee = upsert_employee(
            db,
            user.id,
            gender=data.gender,
            department_id=data.department_id,
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(user)
    db.refresh(employee)
    return user, employee


def employee_analytics(db: Session) -> Dict[str, object]:
    """
    Employee counts grouped by gender and by department. Every Employee row
    lands in exactly one group of each grouping (missing values group under
    None), so each grouping sums to the total.
    """
    count = func.count(Employee.id)

    gender_rows = (
        db.query(Employee.gender, count)
        .group_by(Employee.gender)
        .order_by(count.desc())
        .all()
    )
    department_rows = (
        db.query(Employee.department_id, Department.name, count)
        .outerjoin(Department, Department.id == Employee.department_id)
        .group_by(Employee.department_id, Department.name)
        .order_by(count.desc())
        .all()
    )
    total = db.query(count).scalar() or 0

    gender_stats: List[dict] = [
        {"key": gender, "count": n} for gender, n in gender_rows
    ]
    department_stats: List[dict] = [
        {"key": department_id, "label": name, "count": n}
        for department_id, name, n in department_rows
    ]
    return {
        "gender_stats": gender_stats,
        "department_stats": department_stats,
        "total": total,
    }
