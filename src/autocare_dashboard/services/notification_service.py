from __future__ import annotations

import functools
import logging
import uuid
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from autocare_dashboard.application.dto.events import (
    LocationSharedPayload,
    MessageReceivedPayload,
    PaymentPayload,
    TruckAddedPayload,
)
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.ports.bridge import EventSubscriber
from autocare_dashboard.application.ports.clock import Clock, SystemClock
from autocare_dashboard.domain.entities.notification import Notification
from autocare_dashboard.domain.value_objects.enums import BridgeEvent, NotificationType
from autocare_dashboard.domain.value_objects.ids import NotificationId

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], None]


def format_amount(amount: float, currency: str = "usd") -> str:
    if currency.lower() == "usd":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency.upper()}"


def _payment_started(p: PaymentPayload) -> str:
    return f"{p.user_name} started a payment of {format_amount(p.amount, p.currency)}"


def _payment_completed(p: PaymentPayload) -> str:
    return f"{p.user_name} paid {format_amount(p.amount, p.currency)}"


def _location_shared(p: LocationSharedPayload) -> str:
    if p.address:
        return f"{p.user_name} shared their location: {p.address}"
    return f"{p.user_name} shared their location"


def _truck_added(p: TruckAddedPayload) -> str:
    return f"{p.truck.label} was added to the fleet"


def _message_received(p: MessageReceivedPayload) -> str:
    text = p.text or p.message_record().get("text") or ""
    return f"{p.resolved_sender_name}: {text}" if text else f"{p.resolved_sender_name} sent a message"


@dataclass(frozen=True, slots=True)
class NotificationTemplate:
    type: NotificationType
    title: str
    render: Callable[[Any], str]


NOTIFICATION_TEMPLATES: Mapping[BridgeEvent, NotificationTemplate] = MappingProxyType({
    BridgeEvent.PAYMENT_INITIATED: NotificationTemplate(
        NotificationType.PAYMENT, "Payment Initiated", _payment_started,
    ),
    BridgeEvent.PAYMENT_COMPLETED: NotificationTemplate(
        NotificationType.PAYMENT, "Payment Received", _payment_completed,
    ),
    BridgeEvent.LOCATION_SHARED: NotificationTemplate(
        NotificationType.LOCATION, "Location Shared", _location_shared,
    ),
    BridgeEvent.TRUCK_ADDED: NotificationTemplate(
        NotificationType.FLEET, "Truck Added", _truck_added,
    ),
    BridgeEvent.MESSAGE_RECEIVED: NotificationTemplate(
        NotificationType.MESSAGE, "New Message", _message_received,
    ),
})


class NotificationAggregator:
    """Session-local list of transient UI notifications, newest first.

    Read state lives only here; nothing is acknowledged to the backend.
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Clock | None = None,
        limit: int = 50,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._limit = max(1, limit)
        self._items: list[Notification] = []
        self._listeners: list[NotificationListener] = []
        self._unsubscribe: list[Callable[[], None]] = []

    def attach(self, bridge: EventSubscriber) -> None:
        for event in NOTIFICATION_TEMPLATES:
            handler = functools.partial(self.handle_event, event)
            self._unsubscribe.append(bridge.subscribe(event, handler))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    def add_listener(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    async def handle_event(self, event: BridgeEvent, payload: Any) -> Notification | None:
        # Message notifications follow the conversation fold, which is admin-only
        if event == BridgeEvent.MESSAGE_RECEIVED and not self._session.is_admin:
            return None
        template = NOTIFICATION_TEMPLATES[event]
        return self.add(template.type, template.title, template.render(payload))

    def add(self, type: NotificationType, title: str, message: str) -> Notification:
        notification = Notification(
            id=NotificationId(uuid.uuid4().hex),
            type=type,
            title=title,
            message=message,
            created_at=self._clock.now(),
        )
        self._items.insert(0, notification)
        del self._items[self._limit:]

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
        return notification

    def notify_payment_success(self, amount_cents: int, currency: str = "usd") -> Notification:
        return self.add(
            NotificationType.SUCCESS,
            "Payment Successful",
            f"Payment of {format_amount(amount_cents / 100, currency)} completed successfully",
        )

    def notify_location_shared(self) -> Notification:
        return self.add(
            NotificationType.SUCCESS,
            "Location Shared",
            "Your location has been shared with admins",
        )

    def entries(self, type: NotificationType | None = None) -> list[Notification]:
        if type is None:
            return list(self._items)
        return [n for n in self._items if n.type == type]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.read)

    def mark_read(self, notification_id: str) -> bool:
        for notification in self._items:
            if notification.id == notification_id:
                notification.read = True
                return True
        return False

    def mark_all_read(self) -> None:
        for notification in self._items:
            notification.read = True

    def dismiss(self, notification_id: str) -> bool:
        for idx, notification in enumerate(self._items):
            if notification.id == notification_id:
                del self._items[idx]
                return True
        return False

    def clear(self) -> None:
        self._items.clear()
