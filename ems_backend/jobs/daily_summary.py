import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.mailer import send_templated_mail
from ..models.department import Department
from ..models.employee import Employee
from ..models.notification import Notification
from ..models.user import User, UserRole
from ..services.notifications import record_notification

logger = logging.getLogger(__name__)


def build_summary(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=1)
    return {
        "employees": db.query(func.count(Employee.id)).scalar() or 0,
        "departments": db.query(func.count(Department.id)).scalar() or 0,
        "new_employees": db.query(func.count(Employee.id)).filter(Employee.created_at >= since).scalar() or 0,
        "notifications": db.query(func.count(Notification.id)).filter(Notification.created_at >= since).scalar() or 0,
    }


def format_summary(summary: Dict[str, int]) -> str:
    return (
        f"Daily summary: {summary['employees']} employees "
        f"({summary['new_employees']} new), {summary['departments']} departments, "
        f"{summary['notifications']} notifications in the last 24h"
    )


def run_once(session_factory: Callable[[], Session], now: Optional[datetime] = None) -> str:
    """Record the summary as an admin notification and email every admin."""
    db = session_factory()
    try:
        message = format_summary(build_summary(db, now))
        record_notification(db, message, target_role=UserRole.ADMIN.value)
        admin_emails = [email for (email,) in db.query(User.email).filter(User.role == UserRole.ADMIN)]
    finally:
        db.close()

    for email in admin_emails:
        err = send_templated_mail(
            to_email=email,
            subject="EMS daily summary",
            title="Daily summary",
            message=message,
        )
        if err:
            logger.warning("Daily summary email to %s not sent: %s", email, err)
    logger.info(message)
    return message


async def run_forever(session_factory: Callable[[], Session], interval_hours: int = 24) -> None:
    """The app's single periodic job. Cancelled on shutdown."""
    while True:
        await asyncio.sleep(interval_hours * 3600)
        try:
            await run_in_threadpool(run_once, session_factory)
        except Exception:
            logger.exception("Daily summary job failed")
