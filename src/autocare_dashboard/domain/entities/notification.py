from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from autocare_dashboard.domain.value_objects.enums import NotificationType
from autocare_dashboard.domain.value_objects.ids import NotificationId


@dataclass(slots=True)
class Notification:
    id: NotificationId
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    read: bool = False
