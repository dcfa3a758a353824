import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.mailer import send_templated_mail
from ..core.presence import PresenceHub, hub as default_hub
from ..models.notification import Notification, NotificationType
from ..models.user import UserRole

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def serialize_notification(notification: Notification) -> dict:
    return {
        "event": "notification",
        "id": notification.id,
        "message": notification.message,
        "type": notification.type,
        "targetRole": notification.target_role,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }


def record_notification(
    db: Session,
    message: str,
    type_: str = NotificationType.INFO,
    target_role: str = UserRole.ADMIN.value,
) -> Notification:
    notification = Notification(message=message, type=type_, target_role=target_role)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


async def emit_notification(
    session_factory: SessionFactory,
    message: str,
    type_: str = NotificationType.INFO,
    target_role: str = UserRole.ADMIN.value,
    hub: Optional[PresenceHub] = None,
) -> Optional[Notification]:
    """
    Fire-and-forget: persist a notification in its own session and push it to
    connected clients. Never raises; failures are logged and dropped.
    """
    try:
        db = session_factory()
        try:
            notification = record_notification(db, message, type_, target_role)
            payload = serialize_notification(notification)
        finally:
            db.close()
    except Exception:
        logger.exception("Failed to record notification %r", message)
        return None

    try:
        await (hub or default_hub).broadcast(payload)
    except Exception:
        logger.warning("Failed to broadcast notification %s", notification.id, exc_info=True)
    return notification


def list_notifications(db: Session, role: UserRole, limit: int = 50) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.target_role == role.value)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def send_welcome_email(email: str, name: str) -> bool:
    """Background task: welcome a newly onboarded employee. Never raises."""
    try:
        err = send_templated_mail(
            to_email=email,
            subject="Welcome to EMS!",
            title=f"Welcome, {name}!",
            message="Your EMS account has been successfully created.",
            button_text="Log In",
            button_link=f"{settings.frontend_base_url.rstrip('/')}/login",
        )
    except Exception:
        logger.exception("Welcome email to %s crashed", email)
        return False
    if err:
        logger.warning("Welcome email to %s not sent: %s", email, err)
        return False
    return True
