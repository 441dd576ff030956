"""Push-event payload schemas, validated by the bridge before dispatch."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from autocare_dashboard.application.dto.payloads import Party
from autocare_dashboard.domain.value_objects.enums import BridgeEvent


class BridgePayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    timestamp: datetime | None = None


class MessageReceivedPayload(BridgePayload):
    message_id: str | int | None = Field(default=None, alias="messageId")
    text: str | None = None
    sender_type: str | None = Field(default=None, alias="senderType")
    sender_id: str | int | None = Field(default=None, alias="senderId")
    sender_name: str | None = Field(default=None, alias="senderName")
    sender: Party | str | int | None = None
    message: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _require_sender(self) -> MessageReceivedPayload:
        if self.resolved_sender_id is None:
            raise ValueError("message-received payload has no sender id")
        return self

    @property
    def resolved_sender_id(self) -> str | None:
        if self.sender_id not in (None, ""):
            return str(self.sender_id)
        if isinstance(self.sender, Party) and self.sender.id not in (None, ""):
            return str(self.sender.id)
        return None

    @property
    def resolved_sender_name(self) -> str:
        if self.sender_name:
            return self.sender_name
        if isinstance(self.sender, Party) and self.sender.name:
            return self.sender.name
        return "User"

    @property
    def resolved_sender_email(self) -> str:
        if isinstance(self.sender, Party) and self.sender.email:
            return self.sender.email
        return ""

    def message_record(self) -> dict[str, Any]:
        """Raw message record carried by the event, for the normalizer."""
        if self.message:
            return self.message
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            include={"message_id", "text", "sender_type", "timestamp"},
        )


class PaymentPayload(BridgePayload):
    user_id: str | int | None = Field(default=None, alias="userId")
    user_name: str = Field(default="A user", alias="userName")
    amount: float
    currency: str = "usd"
    payment_intent_id: str | None = Field(default=None, alias="paymentIntentId")


class LocationSharedPayload(BridgePayload):
    user_id: str | int | None = Field(default=None, alias="userId")
    user_name: str = Field(default="A user", alias="userName")
    location: dict[str, Any] = Field(default_factory=dict)

    @property
    def address(self) -> str | None:
        return self.location.get("address") or None


class TruckInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | int | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    license_plate: str | None = Field(default=None, alias="licensePlate")
    status: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.license_plate or "A new truck"


class TruckAddedPayload(BridgePayload):
    truck: TruckInfo


EVENT_SCHEMAS: dict[BridgeEvent, type[BridgePayload]] = {
    BridgeEvent.MESSAGE_RECEIVED: MessageReceivedPayload,
    BridgeEvent.PAYMENT_INITIATED: PaymentPayload,
    BridgeEvent.PAYMENT_COMPLETED: PaymentPayload,
    BridgeEvent.LOCATION_SHARED: LocationSharedPayload,
    BridgeEvent.TRUCK_ADDED: TruckAddedPayload,
}
