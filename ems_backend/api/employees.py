import json
from typing import List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile, status
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile as StarletteUploadFile

from ..api.auth import get_current_user, require_admin
from ..core.errors import BadRequest
from ..core.storage import ObjectStorage, get_object_storage
from ..db import get_db, get_session_factory
from ..models.user import User
from ..schemas.auth import UserResponse
from ..schemas.employee import (
    AnalyticsEnvelope,
    EmployeeCreate,
    EmployeeResponse,
    ProfileEnvelope,
    ResumeEnvelope,
)
from ..services import employees as employee_service
from ..services import profile as profile_service
from ..services.notifications import emit_notification, send_welcome_email
from ..services.profile import Attachment, ProfileChanges

router = APIRouter()

PROFILE_TEXT_FIELDS = ("name", "email", "bio")


def _profile_envelope(user, employee) -> ProfileEnvelope:
    return ProfileEnvelope(
        user=UserResponse.model_validate(user),
        employee=EmployeeResponse.model_validate(employee) if employee is not None else None,
    )


def _form_skills(values: List[str]) -> List[str]:
    # Browsers often send the list as one JSON-encoded field
    if len(values) == 1 and values[0].strip().startswith("["):
        try:
            parsed = json.loads(values[0])
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(s) for s in parsed]
    return values


async def read_attachment(upload) -> Optional[Attachment]:
    if not isinstance(upload, StarletteUploadFile):
        return None
    # Reject from the declared size before buffering the body
    profile_service.check_upload_size(upload.size)
    data = await upload.read()
    return Attachment(data=data, filename=upload.filename, content_type=upload.content_type)


async def read_profile_form(request: Request) -> Tuple[ProfileChanges, Optional[Attachment]]:
    """
    Parse a profile update from multipart/urlencoded form data or JSON.
    A field that is present but empty clears it; an absent field is left alone.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise BadRequest("Malformed JSON body")
        if not isinstance(body, dict):
            raise BadRequest("Expected a JSON object")
        return profile_service.parse_profile_changes(body), None

    form = await request.form()
    data = {}
    for key in PROFILE_TEXT_FIELDS:
        value = form.get(key)
        if isinstance(value, str):
            data[key] = value
    if "skills" in form:
        data["skills"] = _form_skills([v for v in form.getlist("skills") if isinstance(v, str)])

    attachment = await read_attachment(form.get("file"))
    return profile_service.parse_profile_changes(data), attachment


def _notifier(background_tasks: BackgroundTasks, session_factory):
    def notify(message: str) -> None:
        background_tasks.add_task(emit_notification, session_factory, message)
    return notify


@router.post("", response_model=ProfileEnvelope, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Onboard an employee (admin only) and send a welcome email"""
    user, employee = employee_service.create_employee(db, payload)
    background_tasks.add_task(send_welcome_email, user.email, user.name)
    return _profile_envelope(user, employee)


@router.get("/me", response_model=ProfileEnvelope)
def get_own_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user, employee = employee_service.get_own_profile(db, current_user)
    return _profile_envelope(user, employee)


@router.patch("/me", response_model=ProfileEnvelope)
async def update_own_profile(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    form: Tuple[ProfileChanges, Optional[Attachment]] = Depends(read_profile_form),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
    session_factory=Depends(get_session_factory),
):
    """Employee updates their own profile, optionally with a new photo"""
    changes, attachment = form
    user, employee = await profile_service.update_profile(
        db,
        actor=current_user,
        target_user_id=current_user.id,
        changes=changes,
        attachment=attachment,
        storage=storage,
        notify=_notifier(background_tasks, session_factory),
    )
    return _profile_envelope(user, employee)


@router.get("/analytics", response_model=AnalyticsEnvelope)
def get_employee_analytics(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Employee counts by gender and by department"""
    return AnalyticsEnvelope(**employee_service.employee_analytics(db))


@router.get("/{user_id}", response_model=ProfileEnvelope)
def get_employee(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user, employee = employee_service.get_profile(db, user_id)
    return _profile_envelope(user, employee)


@router.patch("/{user_id}", response_model=ProfileEnvelope)
async def update_employee_profile(
    user_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    form: Tuple[ProfileChanges, Optional[Attachment]] = Depends(read_profile_form),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
    session_factory=Depends(get_session_factory),
):
    """Admin updates any employee's profile"""
    changes, attachment = form
    user, employee = await profile_service.update_profile(
        db,
        actor=current_user,
        target_user_id=user_id,
        changes=changes,
        attachment=attachment,
        storage=storage,
        notify=_notifier(background_tasks, session_factory),
    )
    return _profile_envelope(user, employee)


@router.post("/{employee_id}/resume", response_model=ResumeEnvelope)
async def upload_resume(
    employee_id: int,
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    """Upload a resume for an employee record"""
    attachment = await read_attachment(file)
    resume_url = await profile_service.upload_resume(db, employee_id, attachment, storage)
    return ResumeEnvelope(resume_url=resume_url)


@router.get("/{user_id}/resume", response_model=ResumeEnvelope)
def get_resume(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Resume URL for a user; only the owner or an admin"""
    return ResumeEnvelope(resume_url=employee_service.get_resume_url(db, current_user, user_id))
