from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from autocare_dashboard.domain.value_objects.enums import SenderRole
from autocare_dashboard.domain.value_objects.ids import MessageId


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    text: str
    sender_type: SenderRole
    timestamp: datetime
    pending: bool = False

    def confirmed(self) -> Message:
        return replace(self, pending=False)
