"""Socket.IO push-event bridge."""
from __future__ import annotations

import logging
from typing import Any, Callable

import socketio
from pydantic import ValidationError as PydanticValidationError

from autocare_dashboard.application.dto.events import EVENT_SCHEMAS
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.ports.bridge import EventHandler
from autocare_dashboard.domain.value_objects.enums import BridgeEvent

logger = logging.getLogger(__name__)

ADMIN_ROOM_EVENT = "join-admin-room"
USER_ROOM_EVENT = "join-user-room"


class EventBridge:
    """One Socket.IO connection per session, fanned out to local handlers.

    Payloads are validated against ``EVENT_SCHEMAS`` before any handler sees
    them. Handlers are isolated: one raising does not stop the others.
    """

    def __init__(
        self,
        session: Session,
        *,
        url: str,
        socketio_path: str = "socket.io",
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self._session = session
        self._url = url
        self._socketio_path = socketio_path
        self._sio = client or socketio.AsyncClient(reconnection=True)
        self._handlers: dict[BridgeEvent, list[EventHandler]] = {event: [] for event in BridgeEvent}
        self._register()

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    def _register(self) -> None:
        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)
        for event in BridgeEvent:
            self._sio.on(event.value, self._listener_for(event))

    def _listener_for(self, event: BridgeEvent) -> Callable[..., Any]:
        async def _listener(data: Any = None) -> None:
            await self.dispatch(event, data)

        return _listener

    async def connect(self) -> None:
        token = self._session.token
        await self._sio.connect(
            self._url,
            headers={"Authorization": f"Bearer {token}"} if token else {},
            auth={"token": token} if token else None,
            socketio_path=self._socketio_path,
        )

    async def disconnect(self) -> None:
        if self._sio.connected:
            await self._sio.disconnect()

    async def _on_connect(self) -> None:
        if self._session.is_admin:
            await self._sio.emit(ADMIN_ROOM_EVENT)
            logger.info("Bridge connected, joined admin room")
        else:
            await self._sio.emit(USER_ROOM_EVENT, self._session.user_id)
            logger.info("Bridge connected, joined room for user %s", self._session.user_id)

    async def _on_disconnect(self, reason: Any = None) -> None:
        logger.info("Bridge disconnected (%s)", reason or "no reason given")

    def subscribe(self, event: BridgeEvent, handler: EventHandler) -> Callable[[], None]:
        self._handlers[BridgeEvent(event)].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return _unsubscribe

    def unsubscribe(self, event: BridgeEvent, handler: EventHandler) -> None:
        handlers = self._handlers[BridgeEvent(event)]
        if handler in handlers:
            handlers.remove(handler)

    async def dispatch(self, event: BridgeEvent | str, data: Any) -> None:
        try:
            event = BridgeEvent(event)
        except ValueError:
            logger.debug("Ignoring unknown event: %s", event)
            return

        try:
            payload = EVENT_SCHEMAS[event].model_validate(data)
        except PydanticValidationError:
            logger.warning("Dropping invalid %s payload", event, exc_info=True)
            return

        for handler in list(self._handlers[event]):
            try:
                await handler(payload)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, event)
