"""Local backup of conversations and the known-user list.

Layout on top of any ``KeyValueStore``:

* ``<prefix>_<conversation id>``: JSON array of message records
* ``<known users key>``: JSON array of ``{id, name, email}``
"""
from __future__ import annotations

import logging
from typing import Iterable

from autocare_dashboard.application.ports.storage import KeyValueStore
from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.ids import UserId
from autocare_dashboard.infrastructure.storage.mappers import (
    known_user_to_record,
    message_to_record,
    record_to_known_user,
)
from autocare_dashboard.infrastructure.storage.serializer import dump_records, load_records
from autocare_dashboard.services.normalizer import normalize_batch

logger = logging.getLogger(__name__)


class LocalMirror:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = "autocare_messages",
        known_users_key: str = "autocare_message_users",
    ) -> None:
        self._store = store
        self._prefix = f"{prefix}_"
        self._known_users_key = known_users_key

    def key_for(self, conversation_id: str) -> str:
        return f"{self._prefix}{conversation_id}"

    async def load_conversation(self, conversation_id: str) -> list[Message]:
        raw = await self._store.get(self.key_for(conversation_id))
        return normalize_batch(load_records(raw))

    async def load_all(self) -> dict[UserId, list[Message]]:
        conversations: dict[UserId, list[Message]] = {}
        for key in sorted(await self._store.keys(self._prefix)):
            if key == self._known_users_key:
                continue
            conversation_id = UserId(key[len(self._prefix):])
            conversations[conversation_id] = normalize_batch(load_records(await self._store.get(key)))
        return conversations

    async def save_conversation(self, conversation_id: str, messages: Iterable[Message]) -> None:
        records = [message_to_record(m) for m in messages]
        await self._store.set(self.key_for(conversation_id), dump_records(records))

    async def append(self, conversation_id: str, message: Message) -> None:
        """Store ``message``, replacing a stored record with the same id."""
        key = self.key_for(conversation_id)
        records = [
            r for r in load_records(await self._store.get(key))
            if str(r.get("id")) != message.id
        ]
        records.append(message_to_record(message))
        await self._store.set(key, dump_records(records))

    async def discard(self, conversation_id: str, message_id: str) -> None:
        key = self.key_for(conversation_id)
        records = load_records(await self._store.get(key))
        kept = [r for r in records if str(r.get("id")) != message_id]
        if len(kept) != len(records):
            await self._store.set(key, dump_records(kept))

    async def load_known_users(self) -> list[KnownUser]:
        records = load_records(await self._store.get(self._known_users_key))
        users = [u for u in (record_to_known_user(r) for r in records) if u is not None]
        return _dedupe(users)

    async def save_known_users(self, users: Iterable[KnownUser]) -> None:
        records = [known_user_to_record(u) for u in _dedupe(users)]
        await self._store.set(self._known_users_key, dump_records(records))

    async def remember_user(self, user: KnownUser) -> list[KnownUser]:
        users = await self.load_known_users()
        if any(u.id == user.id for u in users):
            return users
        users.append(user)
        await self.save_known_users(users)
        logger.debug("Remembered user %s in local known-user list", user.id)
        return users


def _dedupe(users: Iterable[KnownUser]) -> list[KnownUser]:
    seen: set[str] = set()
    result: list[KnownUser] = []
    for user in users:
        if user.id in seen:
            continue
        seen.add(user.id)
        result.append(user)
    return result
