import asyncio
import io

import pytest
from conftest import FakeStorage, make_employee, make_user
from sqlalchemy.exc import IntegrityError
from starlette.datastructures import UploadFile

from ems_backend.api.employees import read_attachment
from ems_backend.core.config import settings
from ems_backend.core.errors import BadRequest, Conflict, Forbidden, NotFound, UpstreamFailure
from ems_backend.models.employee import Employee
from ems_backend.models.user import UserRole
from ems_backend.services import profile as profile_service
from ems_backend.services.profile import (
    Attachment,
    ProfileChanges,
    authorize_profile_target,
    normalize_skills,
    parse_profile_changes,
    update_profile,
    upload_resume,
    upsert_employee,
)


def run(coro):
    return asyncio.run(coro)


def test_normalize_skills_keeps_order_and_drops_blanks():
    assert normalize_skills(["python, sql", " ", "go", ""]) == ["python", "sql", "go"]
    assert normalize_skills([]) == []


def test_parse_profile_changes_distinguishes_absent_from_empty():
    changes = parse_profile_changes({"bio": "", "skills": [""]})

    assert changes.bio == ""
    assert changes.skills == []
    assert changes.name is None
    assert changes.email is None


def test_parse_profile_changes_rejects_blank_name():
    with pytest.raises(BadRequest):
        parse_profile_changes({"name": "   "})


def test_authorize_profile_target(db):
    admin = make_user(db, name="Root", role=UserRole.ADMIN)
    alice = make_user(db, name="Alice")
    bob = make_user(db, name="Bob")

    authorize_profile_target(alice, alice.id)
    authorize_profile_target(admin, alice.id)
    with pytest.raises(Forbidden):
        authorize_profile_target(alice, bob.id)


def test_upsert_employee_is_idempotent(db):
    alice = make_user(db)

    first = upsert_employee(db, alice.id, bio="one")
    db.commit()
    second = upsert_employee(db, alice.id, bio="two")
    db.commit()

    assert first.id == second.id
    assert db.query(Employee).filter(Employee.user_id == alice.id).count() == 1
    assert db.query(Employee).one().bio == "two"


def test_upsert_keeps_existing_row_and_unrelated_fields(db):
    alice = make_user(db)
    existing = make_employee(db, alice, photo_url="https://x/old.png", gender="female")

    employee = upsert_employee(db, alice.id, bio="new")
    db.commit()

    assert employee.id == existing.id
    assert employee.photo_url == "https://x/old.png"
    assert employee.gender == "female"


def test_update_profile_collects_notification(db):
    alice = make_user(db)
    messages = []

    user, employee = run(update_profile(
        db,
        actor=alice,
        target_user_id=alice.id,
        changes=ProfileChanges(bio="hello", skills=["a"]),
        attachment=None,
        storage=FakeStorage(),
        notify=messages.append,
    ))

    assert employee.bio == "hello"
    assert employee.skills == ["a"]
    assert messages == ["Alice updated their profile"]


def test_update_profile_survives_broken_notifier(db):
    alice = make_user(db)

    def notify(message):
        raise RuntimeError("queue full")

    user, employee = run(update_profile(
        db, alice, alice.id, ProfileChanges(bio="x"), None, FakeStorage(), notify=notify
    ))

    assert employee.bio == "x"


def test_update_profile_upload_failure_raises_upstream(db):
    alice = make_user(db)
    storage = FakeStorage()
    storage.fail = True

    with pytest.raises(UpstreamFailure):
        run(update_profile(
            db, alice, alice.id, ProfileChanges(bio="x"), Attachment(b"img", "a.png"), storage
        ))

    assert db.query(Employee).count() == 0


def test_update_profile_missing_target(db):
    admin = make_user(db, name="Root", role=UserRole.ADMIN)

    with pytest.raises(NotFound):
        run(update_profile(db, admin, 12345, ProfileChanges(), None, FakeStorage()))


def test_upload_resume_checks_record_before_uploading(db):
    storage = FakeStorage()

    with pytest.raises(NotFound):
        run(upload_resume(db, 1, Attachment(b"%PDF", "cv.pdf"), storage))

    assert storage.uploads == []


def test_upload_resume_rejects_empty_attachment(db):
    alice = make_user(db)
    employee = make_employee(db, alice)

    with pytest.raises(BadRequest):
        run(upload_resume(db, employee.id, Attachment(b""), FakeStorage()))
    with pytest.raises(BadRequest):
        run(upload_resume(db, employee.id, None, FakeStorage()))


def test_read_attachment_rejects_declared_size_before_reading(monkeypatch):
    monkeypatch.setattr(settings, "max_upload_size", 4)
    body = io.BytesIO(b"12345")
    upload = UploadFile(body, size=5, filename="big.png")

    with pytest.raises(BadRequest):
        run(read_attachment(upload))

    assert body.tell() == 0


def test_read_attachment_within_limit():
    upload = UploadFile(io.BytesIO(b"img"), size=3, filename="a.png")

    attachment = run(read_attachment(upload))

    assert attachment.data == b"img"
    assert attachment.filename == "a.png"


def test_email_lost_to_concurrent_writer_is_conflict(db, monkeypatch):
    alice = make_user(db)
    bob = make_user(db, name="Bob")
    # Both requests passed the up-front check; the unique index decides
    monkeypatch.setattr(profile_service, "_ensure_email_free", lambda *args: None)

    with pytest.raises(Conflict):
        run(update_profile(
            db, alice, alice.id, ProfileChanges(email=bob.email), None, FakeStorage()
        ))


def test_other_integrity_errors_are_not_reported_as_email_conflicts(db, monkeypatch):
    alice = make_user(db)

    def failing_commit():
        raise IntegrityError("UPDATE users", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(IntegrityError):
        run(update_profile(
            db, alice, alice.id, ProfileChanges(name="Ally"), None, FakeStorage()
        ))
