"""Input shapes accepted from the backend.

Different backend versions name the same message fields differently; the
models below accept all of them and leave the choice between them to the
normalizer's coalescing table.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Party(BaseModel):
    """Embedded sender/recipient document."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | int | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    email: str | None = None


class RawMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    mongo_id: str | int | None = Field(default=None, alias="_id")
    id: str | int | None = None
    message_id: str | int | None = Field(default=None, alias="messageId")

    text: str | None = None

    sender_type: str | None = Field(default=None, alias="senderType")
    sender: str | int | Party | None = None
    sender_id: str | int | None = Field(default=None, alias="senderId")
    sender_name: str | None = Field(default=None, alias="senderName")
    recipient: str | int | Party | None = None
    conversation: str | int | None = None

    created_at: datetime | None = Field(default=None, alias="createdAt")
    timestamp: datetime | None = None

    pending: bool | None = None
