from datetime import datetime
from typing import List, Optional

from .common import APIModel, Envelope


class NotificationResponse(APIModel):
    id: int
    message: str
    type: str
    target_role: str
    created_at: Optional[datetime] = None


class NotificationListEnvelope(Envelope):
    notifications: List[NotificationResponse]
