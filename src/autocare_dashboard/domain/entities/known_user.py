from __future__ import annotations

from dataclasses import dataclass

from autocare_dashboard.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class KnownUser:
    """Conversation partner listed in the admin inbox."""

    id: UserId
    name: str = "User"
    email: str = ""
