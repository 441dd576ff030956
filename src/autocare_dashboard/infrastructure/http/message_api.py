from __future__ import annotations

import logging
from typing import Any

import httpx

from autocare_dashboard.application.dto.api import AdminInbox, SendResult
from autocare_dashboard.application.exceptions import BackendError, TransportError
from autocare_dashboard.config import Settings
from autocare_dashboard.infrastructure.http.protocol import ApiEnvelope

logger = logging.getLogger(__name__)


class HttpMessageApi:
    """Implements application.ports.api.MessageApi over the REST backend."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpMessageApi:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        client = httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            headers=headers,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_own_messages(self) -> list[dict[str, Any]]:
        envelope = await self._request("GET", "/messages")
        return _records(envelope.data)

    async def list_user_messages(self, user_id: str) -> list[dict[str, Any]]:
        envelope = await self._request("GET", f"/messages/{user_id}")
        return _records(envelope.data)

    async def list_admin_messages(self) -> AdminInbox:
        envelope = await self._request("GET", "/messages/admin/all")
        data = envelope.data
        # Older backends answer with a bare list
        if isinstance(data, dict):
            unread = data.get("unreadCount")
            return AdminInbox(
                messages=_records(data.get("messages")),
                unread_count=unread if isinstance(unread, int) else None,
            )
        return AdminInbox(messages=_records(data))

    async def send_message(self, text: str, recipient_id: str | None = None) -> SendResult:
        body: dict[str, Any] = {"text": text}
        if recipient_id is not None:
            body["recipientId"] = recipient_id
        envelope = await self._request("POST", "/messages", json=body)
        if not isinstance(envelope.data, dict):
            raise BackendError("Send succeeded without a message record")
        return SendResult(message=envelope.data, auto_reply=envelope.auto_reply)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> ApiEnvelope:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        try:
            envelope = ApiEnvelope.model_validate(resp.json())
        except ValueError as exc:
            if resp.is_error:
                raise BackendError(
                    f"{method} {path} returned {resp.status_code}",
                    status_code=resp.status_code,
                ) from exc
            raise TransportError(f"{method} {path} returned an unreadable body") from exc

        if resp.is_error or not envelope.success:
            raise BackendError(
                envelope.message or f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        return envelope


def _records(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]
