from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from socketio.exceptions import ConnectionError as BridgeConnectionError

from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.ports.api import MessageApi
from autocare_dashboard.application.ports.clock import Clock, SystemClock
from autocare_dashboard.application.ports.storage import KeyValueStore
from autocare_dashboard.config import Settings
from autocare_dashboard.infrastructure.bridge.socketio_bridge import EventBridge
from autocare_dashboard.infrastructure.http.message_api import HttpMessageApi
from autocare_dashboard.infrastructure.storage.local_mirror import LocalMirror
from autocare_dashboard.infrastructure.storage.memory import InMemoryKeyValueStore
from autocare_dashboard.infrastructure.storage.redis_store import RedisKeyValueStore
from autocare_dashboard.services.message_sync_service import MessageSyncService
from autocare_dashboard.services.notification_service import NotificationAggregator

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> KeyValueStore:
    if settings.STORAGE_BACKEND == "redis":
        return RedisKeyValueStore.from_url(settings.REDIS_URL)
    return InMemoryKeyValueStore()


@dataclass
class DashboardClient:
    """Everything one dashboard session needs, wired together."""

    session: Session
    settings: Settings
    api: MessageApi
    bridge: EventBridge
    store: KeyValueStore
    messages: MessageSyncService
    notifications: NotificationAggregator

    async def start(self) -> None:
        self.messages.attach(self.bridge)
        self.notifications.attach(self.bridge)
        try:
            await self.bridge.connect()
        except BridgeConnectionError as exc:
            logger.warning("Real-time bridge unavailable, continuing without push: %s", exc)
        await self.messages.load_conversations()

    async def stop(self) -> None:
        self.messages.detach()
        self.notifications.detach()
        await self.bridge.disconnect()
        if isinstance(self.api, HttpMessageApi):
            await self.api.aclose()
        if isinstance(self.store, RedisKeyValueStore):
            await self.store.aclose()


def create_client(
    session: Session,
    settings: Settings | None = None,
    *,
    api: MessageApi | None = None,
    bridge: EventBridge | None = None,
    store: KeyValueStore | None = None,
    clock: Clock | None = None,
) -> DashboardClient:
    settings = settings or Settings()
    clock = clock or SystemClock()
    store = store if store is not None else build_store(settings)
    api = api or HttpMessageApi.from_settings(settings, session.token)
    bridge = bridge or EventBridge(
        session, url=settings.SOCKET_URL, socketio_path=settings.SOCKET_PATH,
    )
    mirror = LocalMirror(
        store,
        prefix=settings.STORAGE_KEY_PREFIX,
        known_users_key=settings.KNOWN_USERS_KEY,
    )
    return DashboardClient(
        session=session,
        settings=settings,
        api=api,
        bridge=bridge,
        store=store,
        messages=MessageSyncService(session, api, mirror, settings=settings, clock=clock),
        notifications=NotificationAggregator(
            session, clock=clock, limit=settings.NOTIFICATION_LIMIT,
        ),
    )


@asynccontextmanager
async def lifespan(client: DashboardClient) -> AsyncIterator[DashboardClient]:
    """Connect and load on entry, tear everything down on exit."""
    await client.start()
    try:
        yield client
    finally:
        await client.stop()
