import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ems_backend.app import app
from ems_backend.core.security import create_access_token, get_password_hash
from ems_backend.core.storage import StorageError, get_object_storage
from ems_backend.db import Base, get_db, get_session_factory
from ems_backend.models.employee import Employee
from ems_backend.models.user import User, UserRole

PASSWORD = "s3cret-pass"
PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeStorage:
    """In-memory stand-in for the S3 collaborator."""

    def __init__(self):
        self.uploads = []
        self.fail = False

    async def upload(self, data, *, folder, filename=None, content_type=None):
        if self.fail:
            raise StorageError("bucket unavailable")
        key = f"{folder}/{len(self.uploads) + 1}-{filename or 'blob'}"
        self.uploads.append({"key": key, "data": data, "content_type": content_type})
        return f"https://cdn.test/{key}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(session_factory, storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_object_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(
    db,
    name: str = "Alice",
    email: Optional[str] = None,
    role: UserRole = UserRole.EMPLOYEE,
    department_id: Optional[int] = None,
) -> User:
    user = User(
        name=name,
        email=email or f"{name.lower()}@example.com",
        role=role,
        password_hash=PASSWORD_HASH,
        department_id=department_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_employee(db, user: User, **values) -> Employee:
    employee = Employee(user_id=user.id, skills=values.pop("skills", []), **values)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return make_user(db, name="Root", email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def alice(db):
    return make_user(db, name="Alice")


@pytest.fixture
def bob(db):
    return make_user(db, name="Bob")
