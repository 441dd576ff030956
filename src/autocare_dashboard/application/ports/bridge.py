from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from autocare_dashboard.domain.value_objects.enums import BridgeEvent

EventHandler = Callable[[Any], Awaitable[None]]


class EventSubscriber(Protocol):
    def subscribe(self, event: BridgeEvent, handler: EventHandler) -> Callable[[], None]: ...

    def unsubscribe(self, event: BridgeEvent, handler: EventHandler) -> None: ...
