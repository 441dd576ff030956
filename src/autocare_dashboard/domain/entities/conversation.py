from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.enums import ConversationState
from autocare_dashboard.domain.value_objects.ids import MessageId, UserId


@dataclass(slots=True)
class Conversation:
    """Ordered message history between one user and the admin pool.

    Messages are kept in non-decreasing timestamp order. Identifiers are
    unique: inserting a message whose id is already present replaces the
    earlier record.
    """

    user_id: UserId
    messages: list[Message] = field(default_factory=list)
    state: ConversationState = ConversationState.EMPTY

    def upsert(self, message: Message) -> None:
        for idx, existing in enumerate(self.messages):
            if existing.id == message.id:
                self.messages[idx] = message
                break
        else:
            self.messages.append(message)
        # list.sort is stable, equal timestamps keep arrival order
        self.messages.sort(key=lambda m: m.timestamp)

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.upsert(message)

    def replace(self, messages: Iterable[Message]) -> None:
        self.messages = []
        self.extend(messages)

    def discard(self, message_id: MessageId) -> Message | None:
        for idx, existing in enumerate(self.messages):
            if existing.id == message_id:
                return self.messages.pop(idx)
        return None

    def pending(self) -> list[Message]:
        return [m for m in self.messages if m.pending]

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None
