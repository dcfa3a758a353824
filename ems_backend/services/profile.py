"""
Profile update workflow.

Every call takes the acting user explicitly. The sequence is:

1. authorization gate (self-service or admin acting on a target)
2. optional upload of the attachment to object storage
3. update name/email on the User
4. update bio/skills/photo on the Employee, creating it if absent
5. hand a notification for admins to the background queue

The upload happens before anything is written; a failed upload leaves the
records untouched. Steps 3 and 4 share one commit. The notification never
fails the request.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from pydantic import EmailStr, Field, ValidationError, field_validator
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import BadRequest, Conflict, Forbidden, NotFound, UpstreamFailure
from ..core.storage import ObjectStorage, StorageError
from ..models.employee import Employee
from ..models.user import User
from ..schemas.common import APIModel

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


class ProfileChanges(APIModel):
    """Mutable profile fields. None means "leave as is"; "" / [] clear bio / skills."""

    name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("skills")
    @classmethod
    def tidy_skills(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else normalize_skills(v)


@dataclass
class Attachment:
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.data


def normalize_skills(raw: Iterable[str]) -> List[str]:
    """Split comma-joined entries, trim, drop blanks. Order is kept."""
    skills = []
    for entry in raw:
        for part in str(entry).split(","):
            part = part.strip()
            if part:
                skills.append(part)
    return skills


def parse_profile_changes(data: dict) -> ProfileChanges:
    try:
        return ProfileChanges.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise BadRequest(f"{field}: {first.get('msg')}" if field else first.get("msg"))


def check_upload_size(size: Optional[int]) -> None:
    if size and size > settings.max_upload_size:
        raise BadRequest(f"File size exceeds maximum of {settings.max_upload_size} bytes")


def check_attachment_size(attachment: Optional[Attachment]) -> None:
    if attachment:
        check_upload_size(len(attachment.data))


def authorize_profile_target(actor: User, target_user_id: int) -> None:
    if actor.id != target_user_id and not actor.is_admin:
        raise Forbidden("You can only update your own profile")


def _insert_employee_if_absent(db: Session, user_id: int) -> None:
    """Atomic insert keyed by the unique user_id; a concurrent winner is kept."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(Employee).values(user_id=user_id, skills=[])
    elif dialect == "sqlite":
        stmt = sqlite.insert(Employee).values(user_id=user_id, skills=[])
    else:
        stmt = None

    if stmt is not None:
        db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))
        return

    # Other backends: the unique constraint still prevents a second row
    if db.query(Employee.id).filter(Employee.user_id == user_id).first() is None:
        db.add(Employee(user_id=user_id, skills=[]))
        try:
            db.flush()
        except IntegrityError:
            db.rollback()


def upsert_employee(db: Session, user_id: int, **values) -> Employee:
    """Find-or-create the Employee for user_id and apply values (not committed)."""
    _insert_employee_if_absent(db, user_id)
    employee = (
        db.query(Employee)
        .filter(Employee.user_id == user_id)
        .populate_existing()
        .one()
    )
    for key, value in values.items():
        setattr(employee, key, value)
    return employee


async def _upload(storage: ObjectStorage, attachment: Attachment, folder: str) -> str:
    try:
        return await storage.upload(
            attachment.data,
            folder=folder,
            filename=attachment.filename,
            content_type=attachment.content_type,
        )
    except StorageError as e:
        logger.error("Upload to %s failed: %s", folder, e)
        raise UpstreamFailure("File upload failed")


def _email_taken(db: Session, email: str, user_id: int) -> bool:
    return db.query(User.id).filter(User.email == email, User.id != user_id).first() is not None


def _ensure_email_free(db: Session, email: str, user_id: int) -> None:
    if _email_taken(db, email, user_id):
        raise Conflict("Email already registered")


def _schedule(notify: Optional[Notify], message: str) -> None:
    if notify is None:
        return
    try:
        notify(message)
    except Exception:
        logger.exception("Could not queue notification %r", message)


async def update_profile(
    db: Session,
    actor: User,
    target_user_id: int,
    changes: ProfileChanges,
    attachment: Optional[Attachment],
    storage: ObjectStorage,
    notify: Optional[Notify] = None,
) -> Tuple[User, Employee]:
    authorize_profile_target(actor, target_user_id)
    check_attachment_size(attachment)

    user = db.query(User).filter(User.id == target_user_id).first()
    if not user:
        raise NotFound("User not found")
    if changes.email is not None:
        _ensure_email_free(db, changes.email, user.id)

    photo_url = None
    if attachment and not attachment.is_empty:
        photo_url = await _upload(storage, attachment, settings.profile_folder)

    employee_values = {}
    if changes.bio is not None:
        employee_values["bio"] = changes.bio
    if changes.skills is not None:
        employee_values["skills"] = changes.skills
    if photo_url:
        employee_values["photo_url"] = photo_url
    employee = upsert_employee(db, user.id, **employee_values)

    if changes.name is not None:
        user.name = changes.name
    if changes.email is not None:
        user.email = changes.email

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Lost a race for the email; any other constraint is a real failure
        if changes.email is not None and _email_taken(db, changes.email, target_user_id):
            raise Conflict("Email already registered")
        raise
    db.refresh(user)
    db.refresh(employee)

    if actor.id == user.id:
        message = f"{user.name} updated their profile"
    else:
        message = f"{actor.name} updated {user.name}'s profile"
    _schedule(notify, message)
    return user, employee


async def upload_resume(
    db: Session,
    employee_id: int,
    attachment: Optional[Attachment],
    storage: ObjectStorage,
) -> str:
    if attachment is None or attachment.is_empty:
        raise BadRequest("No file uploaded")
    check_attachment_size(attachment)

    employee = (
        db.query(Employee)
        .join(User, User.id == Employee.user_id)
        .filter(Employee.id == employee_id)
        .first()
    )
    if not employee:
        raise NotFound("Employee not found")

    resume_url = await _upload(storage, attachment, settings.resume_folder)
    employee.resume_url = resume_url
    db.commit()
    return resume_url
