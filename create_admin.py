#!/usr/bin/env python3
"""
Seed the first EMS admin account.

    python create_admin.py

ADMIN_NAME, ADMIN_EMAIL and ADMIN_PASSWORD are read from the environment
(or .env). Missing values are prompted for when a terminal is attached.
Exits non-zero when the account cannot be created so deploy scripts can
stop on it.
"""
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv()

from ems_backend.core.errors import AppError, BadRequest, Conflict  # noqa: E402
from ems_backend.core.logging import configure_logging  # noqa: E402
from ems_backend.core.security import get_password_hash  # noqa: E402
from ems_backend.db import SessionLocal, create_tables  # noqa: E402
from ems_backend.models.user import User, UserRole  # noqa: E402
from ems_backend.schemas.employee import EmployeeCreate  # noqa: E402

logger = logging.getLogger("create_admin")

FIELDS = ("ADMIN_NAME", "ADMIN_EMAIL", "ADMIN_PASSWORD")


def collect_fields(env=os.environ, interactive=None, prompt=input) -> dict:
    values = {key: env.get(key, "").strip() for key in FIELDS}
    missing = [key for key, value in values.items() if not value]
    if missing:
        if interactive is None:
            interactive = sys.stdin.isatty()
        if not interactive:
            raise BadRequest(f"Missing environment variables: {', '.join(missing)}")
        for key in missing:
            values[key] = prompt(f"{key.split('_', 1)[1].title()}: ").strip()
    return {
        "name": values["ADMIN_NAME"],
        "email": values["ADMIN_EMAIL"],
        "password": values["ADMIN_PASSWORD"],
    }


def validate_fields(fields: dict) -> EmployeeCreate:
    try:
        return EmployeeCreate.model_validate(fields)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise BadRequest(f"{field}: {first.get('msg')}")


def create_admin_user(db, data: EmployeeCreate) -> User:
    if db.query(User.id).filter(User.email == data.email).first():
        raise Conflict(f"Email already registered: {data.email}")
    admin = User(
        name=data.name,
        email=data.email,
        role=UserRole.ADMIN,
        password_hash=get_password_hash(data.password),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def main(session_factory=None, **collect_kwargs) -> int:
    if session_factory is None:
        create_tables()
        session_factory = SessionLocal

    db = session_factory()
    try:
        existing = db.query(User).filter(User.role == UserRole.ADMIN).first()
        if existing:
            logger.info("Admin user already exists: %s", existing.email)
            return 0
        data = validate_fields(collect_fields(**collect_kwargs))
        admin = create_admin_user(db, data)
    except AppError as e:
        db.rollback()
        logger.error("Admin not created: %s", e.message)
        return 1
    except Exception:
        db.rollback()
        logger.exception("Admin not created")
        return 1
    finally:
        db.close()

    logger.info("Admin user created: id=%s email=%s", admin.id, admin.email)
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(main())
