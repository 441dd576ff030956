"""Shared test fixtures."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from autocare_dashboard.application.dto.api import AdminInbox, SendResult
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.exceptions import AppError, TransportError
from autocare_dashboard.config import Settings
from autocare_dashboard.domain.value_objects.ids import UserId
from autocare_dashboard.infrastructure.bridge.socketio_bridge import EventBridge
from autocare_dashboard.infrastructure.storage.local_mirror import LocalMirror
from autocare_dashboard.infrastructure.storage.memory import InMemoryKeyValueStore
from autocare_dashboard.services.message_sync_service import MessageSyncService

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def iso(minutes: int) -> str:
    return at(minutes).isoformat().replace("+00:00", "Z")


@dataclass
class ManualClock:
    current: datetime = BASE_TIME

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(current=at(60))


@pytest.fixture
def user_session() -> Session:
    return Session(user_id=UserId("u-42"), name="Dana Driver", email="dana@example.com")


@pytest.fixture
def admin_session() -> Session:
    return Session(user_id=UserId("a-1"), name="Admin", email="admin@autocare.com", is_admin=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(FANOUT_CONCURRENCY=4, NEWEST_FIRST_PAGES=True, RETRY_PENDING_ON_LOAD=True)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def mirror(store) -> LocalMirror:
    return LocalMirror(store)


def make_record(
    text: str = "hello",
    *,
    minutes: int = 0,
    mongo_id: str | None = None,
    sender_type: str = "user",
    sender: Any = None,
    recipient: Any = None,
    conversation: str | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {"text": text, "senderType": sender_type, "createdAt": iso(minutes)}
    if mongo_id is not None:
        record["_id"] = mongo_id
    if sender is not None:
        record["sender"] = sender
    if recipient is not None:
        record["recipient"] = recipient
    if conversation is not None:
        record["conversation"] = conversation
    return record


@dataclass
class FakeMessageApi:
    """In-memory MessageApi; ``offline`` makes every call a transport failure."""

    own_messages: list[dict[str, Any]] = field(default_factory=list)
    user_messages: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    admin_inbox: AdminInbox = field(default_factory=AdminInbox)
    failing_users: dict[str, AppError] = field(default_factory=dict)
    offline: bool = False
    auto_reply: dict[str, Any] | None = None
    clock: ManualClock | None = None
    sent: list[tuple[str, str | None]] = field(default_factory=list)
    user_fetches: list[str] = field(default_factory=list)
    _next_id: int = 1000

    def _check(self) -> None:
        if self.offline:
            raise TransportError("backend unreachable")

    async def list_own_messages(self) -> list[dict[str, Any]]:
        self._check()
        return list(self.own_messages)

    async def list_user_messages(self, user_id: str) -> list[dict[str, Any]]:
        self._check()
        self.user_fetches.append(user_id)
        if user_id in self.failing_users:
            raise self.failing_users[user_id]
        return list(self.user_messages.get(user_id, []))

    async def list_admin_messages(self) -> AdminInbox:
        self._check()
        return self.admin_inbox

    async def send_message(self, text: str, recipient_id: str | None = None) -> SendResult:
        self._check()
        self.sent.append((text, recipient_id))
        self._next_id += 1
        now = (self.clock.now() if self.clock else BASE_TIME).isoformat()
        message = {
            "_id": f"srv-{self._next_id}",
            "text": text,
            "senderType": "admin" if recipient_id else "user",
            "createdAt": now,
        }
        if recipient_id:
            message["recipient"] = recipient_id
        return SendResult(message=message, auto_reply=self.auto_reply)


@pytest.fixture
def api(clock) -> FakeMessageApi:
    return FakeMessageApi(clock=clock)


@dataclass
class FakeSocketClient:
    """Stands in for socketio.AsyncClient: records handlers and emits."""

    handlers: dict[str, Callable[..., Any]] = field(default_factory=dict)
    emitted: list[tuple[str, Any]] = field(default_factory=list)
    connected: bool = False
    connect_kwargs: dict[str, Any] = field(default_factory=dict)

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers[event] = handler

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connected = True
        self.connect_kwargs = {"url": url, **kwargs}
        await self.handlers["connect"]()

    async def disconnect(self) -> None:
        self.connected = False
        await self.handlers["disconnect"]("client disconnect")

    async def deliver(self, event: str, data: Any) -> None:
        """Simulate the server pushing ``event``."""
        await self.handlers[event](data)


@pytest.fixture
def socket_client() -> FakeSocketClient:
    return FakeSocketClient()


def make_bridge(session: Session, client: FakeSocketClient) -> EventBridge:
    return EventBridge(session, url="http://backend.test", client=client)  # type: ignore[arg-type]


def make_service(
    session: Session,
    api: FakeMessageApi,
    mirror: LocalMirror,
    settings: Settings,
    clock: ManualClock,
) -> MessageSyncService:
    return MessageSyncService(session, api, mirror, settings=settings, clock=clock)
