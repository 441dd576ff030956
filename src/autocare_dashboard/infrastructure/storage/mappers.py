from __future__ import annotations

from typing import Any

from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.ids import UserId


def message_to_record(message: Message) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": message.id,
        "text": message.text,
        "senderType": message.sender_type.value,
        "timestamp": message.timestamp,
    }
    if message.pending:
        record["pending"] = True
    return record


def known_user_to_record(user: KnownUser) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email}


def record_to_known_user(record: dict[str, Any]) -> KnownUser | None:
    user_id = record.get("id")
    if user_id in (None, ""):
        return None
    return KnownUser(
        id=UserId(str(user_id)),
        name=record.get("name") or "User",
        email=record.get("email") or "",
    )
