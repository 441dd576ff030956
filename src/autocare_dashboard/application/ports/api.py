from __future__ import annotations

from typing import Any, Protocol

from autocare_dashboard.application.dto.api import AdminInbox, SendResult


class MessageApi(Protocol):
    """Backend message endpoints.

    Implementations raise ``TransportError`` when the backend is unreachable
    and ``BackendError`` when it reports a failure.
    """

    async def list_own_messages(self) -> list[dict[str, Any]]: ...

    async def list_user_messages(self, user_id: str) -> list[dict[str, Any]]: ...

    async def list_admin_messages(self) -> AdminInbox: ...

    async def send_message(self, text: str, recipient_id: str | None = None) -> SendResult: ...
