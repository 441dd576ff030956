from __future__ import annotations

from enum import StrEnum


class SenderRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class ConversationState(StrEnum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    LOCAL_FALLBACK = "local_fallback"


class NotificationType(StrEnum):
    PAYMENT = "payment"
    LOCATION = "location"
    MESSAGE = "message"
    FLEET = "fleet"
    SUCCESS = "success"
    INFO = "info"


class BridgeEvent(StrEnum):
    MESSAGE_RECEIVED = "message-received"
    PAYMENT_INITIATED = "payment-initiated"
    PAYMENT_COMPLETED = "payment-completed"
    LOCATION_SHARED = "location-shared"
    TRUCK_ADDED = "truck-added"
