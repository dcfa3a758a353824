from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.auth import get_current_user
from ..db import get_db
from ..models.user import User
from ..schemas.notification import NotificationListEnvelope, NotificationResponse
from ..services.notifications import list_notifications

router = APIRouter()


@router.get("", response_model=NotificationListEnvelope)
def get_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Notifications addressed to the caller's role, newest first"""
    notifications = list_notifications(db, current_user.role, limit)
    return NotificationListEnvelope(
        notifications=[NotificationResponse.model_validate(n) for n in notifications]
    )
