from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class SendResult:
    message: dict[str, Any]
    auto_reply: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class AdminInbox:
    """Result of the admin-wide message listing."""

    messages: list[dict[str, Any]] = field(default_factory=list)
    unread_count: int | None = None
