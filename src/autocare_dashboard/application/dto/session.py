from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.value_objects.enums import SenderRole
from autocare_dashboard.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class Session:
    """Authenticated dashboard user as handed over by the auth layer."""

    user_id: UserId
    name: str = ""
    email: str = ""
    is_admin: bool = False
    token: str | None = None
    profile_messages: list[dict[str, Any]] = field(default_factory=list)

    @property
    def role(self) -> SenderRole:
        return SenderRole.ADMIN if self.is_admin else SenderRole.USER

    def as_known_user(self) -> KnownUser:
        return KnownUser(id=self.user_id, name=self.name or "User", email=self.email)
