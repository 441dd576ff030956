"""Conversation state for one dashboard session.

The service is the only writer of conversations and of the known-user
list. Backend failures never reach the caller: loads degrade to the local
mirror, sends degrade to a locally stored pending message.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Mapping

from autocare_dashboard.application.dto.api import SendResult
from autocare_dashboard.application.dto.events import MessageReceivedPayload
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.application.exceptions import (
    BackendError,
    StorageError,
    TransportError,
    ValidationError,
)
from autocare_dashboard.application.policies.permissions import assert_admin
from autocare_dashboard.application.ports.api import MessageApi
from autocare_dashboard.application.ports.bridge import EventSubscriber
from autocare_dashboard.application.ports.clock import Clock, SystemClock
from autocare_dashboard.config import Settings
from autocare_dashboard.domain.entities.conversation import Conversation
from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.enums import BridgeEvent, ConversationState, SenderRole
from autocare_dashboard.domain.value_objects.ids import MessageId, UserId
from autocare_dashboard.infrastructure.storage.local_mirror import LocalMirror
from autocare_dashboard.services.normalizer import (
    conversation_key,
    counterpart,
    generate_message_id,
    normalize_batch,
    normalize_message,
)

logger = logging.getLogger(__name__)


class MessageSyncService:
    def __init__(
        self,
        session: Session,
        api: MessageApi,
        mirror: LocalMirror,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._api = api
        self._mirror = mirror
        self._settings = settings or Settings()
        self._clock = clock or SystemClock()

        self._conversations: dict[UserId, Conversation] = {}
        self._known_users: list[KnownUser] = []
        self._selected_user: KnownUser | None = None
        self._unread_count: int | None = None
        self._loads_in_flight = 0
        self._profile_consumed = False
        # Pending ids with a resend in flight, and those a resend already confirmed
        self._resending: set[MessageId] = set()
        self._resent: set[MessageId] = set()
        self._unsubscribe: list[Callable[[], None]] = []

    # -- read side -----------------------------------------------------

    @property
    def conversations(self) -> Mapping[UserId, tuple[Message, ...]]:
        return MappingProxyType({uid: tuple(c.messages) for uid, c in self._conversations.items()})

    @property
    def messages(self) -> list[Message]:
        """The session's own conversation; empty for admins."""
        if self._session.is_admin:
            return []
        conversation = self._conversations.get(self._session.user_id)
        return list(conversation.messages) if conversation else []

    @property
    def known_users(self) -> list[KnownUser]:
        return list(self._known_users)

    @property
    def loading(self) -> bool:
        return self._loads_in_flight > 0

    @property
    def unread_count(self) -> int | None:
        return self._unread_count

    def conversation_state(self, user_id: str) -> ConversationState:
        conversation = self._conversations.get(UserId(str(user_id)))
        return conversation.state if conversation else ConversationState.EMPTY

    def pending_messages(self) -> list[tuple[UserId, Message]]:
        """Unsynced messages written by this session, oldest first."""
        pending = [
            (uid, m)
            for uid, conversation in self._conversations.items()
            for m in conversation.pending()
            if m.sender_type == self._session.role
        ]
        pending.sort(key=lambda item: item[1].timestamp)
        return pending

    @property
    def selected_user(self) -> KnownUser | None:
        return self._selected_user

    def set_selected_user(self, user: KnownUser | None) -> None:
        assert_admin(self._session)
        self._selected_user = user

    # -- bridge --------------------------------------------------------

    def attach(self, bridge: EventSubscriber) -> None:
        self._unsubscribe.append(
            bridge.subscribe(BridgeEvent.MESSAGE_RECEIVED, self.handle_message_received)
        )

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    async def handle_message_received(self, payload: MessageReceivedPayload) -> None:
        if not self._session.is_admin:
            return

        sender_id = UserId(str(payload.resolved_sender_id))
        message = normalize_message(
            payload.message_record(), clock=self._clock, default_sender=SenderRole.USER,
        )
        if message is None:
            logger.debug("Ignoring message-received without usable text from %s", sender_id)
            return

        conversation = self._conversations.get(sender_id)
        if conversation is None:
            conversation = Conversation(sender_id, state=ConversationState.LOADED)
            self._conversations[sender_id] = conversation
        conversation.upsert(message)
        await self._backup_message(sender_id, message)

        if not any(u.id == sender_id for u in self._known_users):
            self._known_users.insert(
                0,
                KnownUser(
                    id=sender_id,
                    name=payload.resolved_sender_name,
                    email=payload.resolved_sender_email,
                ),
            )
            await self._backup_known_users()

    # -- loading -------------------------------------------------------

    async def load_conversations(self) -> None:
        self._loads_in_flight += 1
        try:
            if self._session.is_admin:
                await self._load_admin()
            else:
                await self._load_user()
        finally:
            self._loads_in_flight -= 1

    async def refresh_messages(self) -> None:
        await self.load_conversations()

    async def _load_user(self) -> None:
        user_id = self._session.user_id
        conversation = self._conversation(user_id)
        conversation.state = ConversationState.LOADING

        try:
            if self._session.profile_messages and not self._profile_consumed:
                # The profile payload is a snapshot; later refreshes go to the backend
                self._profile_consumed = True
                messages = normalize_batch(self._session.profile_messages, clock=self._clock)
            else:
                records = await self._api.list_own_messages()
                messages = normalize_batch(
                    records, newest_first=self._settings.NEWEST_FIRST_PAGES, clock=self._clock,
                )
        except (TransportError, BackendError) as exc:
            logger.warning("Loading messages failed, using local copy: %s", exc)
            conversation.replace(await self._read_local(user_id))
            conversation.state = ConversationState.LOCAL_FALLBACK
            return

        conversation.replace(messages)
        conversation.state = ConversationState.LOADED
        await self._after_load({user_id: await self._read_local(user_id)})

    async def _load_admin(self) -> None:
        previous_states = {uid: c.state for uid, c in self._conversations.items()}
        for conversation in self._conversations.values():
            conversation.state = ConversationState.LOADING

        try:
            inbox = await self._api.list_admin_messages()
        except (TransportError, BackendError) as exc:
            logger.warning("Loading admin inbox failed, using local copies: %s", exc)
            await self._load_admin_fallback()
            return

        grouped: dict[UserId, list[dict[str, Any]]] = {}
        observed: list[KnownUser] = []
        for record in inbox.messages:
            key = conversation_key(record)
            if key is None:
                continue
            grouped.setdefault(key, []).append(record)
            user = counterpart(record)
            if user is not None and all(u.id != user.id for u in observed):
                observed.append(user)

        provisional = {
            uid: normalize_batch(records, clock=self._clock) for uid, records in grouped.items()
        }
        user_ids = list(provisional)
        semaphore = asyncio.Semaphore(max(1, self._settings.FANOUT_CONCURRENCY))
        fetched = await asyncio.gather(*(self._fetch_user(uid, semaphore) for uid in user_ids))

        conversations: dict[UserId, Conversation] = {}
        for uid, authoritative in zip(user_ids, fetched):
            conversation = self._conversations.get(uid) or Conversation(uid)
            conversation.replace(authoritative if authoritative is not None else provisional[uid])
            conversation.state = ConversationState.LOADED
            conversations[uid] = conversation
        # Conversations the summary does not mention (e.g. opened by a push) are kept
        for uid, conversation in self._conversations.items():
            if uid not in conversations:
                conversation.state = previous_states.get(uid, ConversationState.LOADED)
                conversations[uid] = conversation
        self._conversations = conversations
        self._unread_count = inbox.unread_count

        persisted = await self._read_known_users()
        self._known_users = _merge_users(observed, self._known_users, persisted)
        await self._backup_known_users()

        await self._after_load(await self._read_local_all())
        logger.info(
            "Loaded %d conversation(s), %d authoritative",
            len(conversations), sum(1 for r in fetched if r is not None),
        )

    async def _fetch_user(self, user_id: UserId, semaphore: asyncio.Semaphore) -> list[Message] | None:
        """Authoritative history for one user, or ``None`` if the fetch failed."""
        async with semaphore:
            try:
                records = await self._api.list_user_messages(user_id)
            except (TransportError, BackendError) as exc:
                logger.warning("Fetching conversation %s failed, keeping summary: %s", user_id, exc)
                return None
        return normalize_batch(
            records, newest_first=self._settings.NEWEST_FIRST_PAGES, clock=self._clock,
        )

    async def _load_admin_fallback(self) -> None:
        local = await self._read_local_all()
        conversations: dict[UserId, Conversation] = {}
        for uid, messages in local.items():
            conversation = self._conversations.get(uid) or Conversation(uid)
            conversation.replace(messages)
            conversation.state = ConversationState.LOCAL_FALLBACK
            conversations[uid] = conversation
        self._conversations = conversations
        self._known_users = _merge_users(self._known_users, await self._read_known_users())

    async def _after_load(self, local: Mapping[UserId, list[Message]]) -> None:
        """Keep unsynced local messages across a reload, back up, and resend."""
        for uid, messages in local.items():
            pending = [m for m in messages if m.pending and m.id not in self._resent]
            if not pending:
                continue
            conversation = self._conversations.get(uid)
            if conversation is None:
                conversation = Conversation(uid, state=ConversationState.LOADED)
                self._conversations[uid] = conversation
            known_ids = {m.id for m in conversation.messages}
            conversation.extend(m for m in pending if m.id not in known_ids)

        for conversation in list(self._conversations.values()):
            await self._backup_conversation(conversation)

        if self._settings.RETRY_PENDING_ON_LOAD and self.pending_messages():
            await self.retry_pending()

    # -- sending -------------------------------------------------------

    async def send_message(self, text: str) -> Message:
        """Send as the session user; admins send to the selected user.

        Always returns the appended message, which is pending when the
        backend could not be reached.
        """
        text = _clean_text(text)
        if self._session.is_admin:
            if self._selected_user is None:
                raise ValidationError("Select a user before sending as admin")
            return await self.send_message_to_user(self._selected_user.id, text)
        return await self._send(self._session.user_id, text, recipient_id=None)

    async def send_message_to_user(self, user_id: str, text: str) -> Message:
        assert_admin(self._session)
        text = _clean_text(text)
        user_id = UserId(str(user_id))
        return await self._send(user_id, text, recipient_id=user_id)

    async def _send(self, conversation_id: UserId, text: str, *, recipient_id: str | None) -> Message:
        try:
            result = await self._api.send_message(text, recipient_id)
        except (TransportError, BackendError) as exc:
            logger.warning(
                "Sending to conversation %s failed, stored as pending: %s", conversation_id, exc,
            )
            message = Message(
                id=generate_message_id(self._clock),
                text=text,
                sender_type=self._session.role,
                timestamp=self._clock.now(),
                pending=True,
            )
            await self._append(conversation_id, message)
            await self._remember_self()
            return message

        message = await self._apply_send_result(conversation_id, text, result)
        await self._remember_self()
        return message

    async def _apply_send_result(self, conversation_id: UserId, text: str, result: SendResult) -> Message:
        confirmed = normalize_message(
            result.message, clock=self._clock, default_sender=self._session.role,
        )
        if confirmed is None:
            confirmed = Message(
                id=generate_message_id(self._clock),
                text=text,
                sender_type=self._session.role,
                timestamp=self._clock.now(),
            )
        confirmed = confirmed.confirmed()
        await self._append(conversation_id, confirmed)

        if result.auto_reply:
            reply = normalize_message(
                result.auto_reply, clock=self._clock, default_sender=SenderRole.ADMIN,
            )
            if reply is not None:
                if reply.timestamp < confirmed.timestamp:
                    reply = replace(reply, timestamp=confirmed.timestamp)
                await self._append(conversation_id, reply.confirmed())
        return confirmed

    async def retry_pending(self) -> int:
        """Resend every pending message once; return how many were confirmed."""
        confirmed = 0
        for conversation_id, message in self.pending_messages():
            # A concurrent load may already be resending it, or have confirmed it
            if message.id in self._resending or message.id in self._resent:
                continue
            if message not in self._conversation(conversation_id).pending():
                continue
            recipient_id = conversation_id if self._session.is_admin else None
            self._resending.add(message.id)
            try:
                result = await self._api.send_message(message.text, recipient_id)
            except (TransportError, BackendError) as exc:
                logger.info("Message %s is still unsynced: %s", message.id, exc)
                continue
            else:
                self._resent.add(message.id)
            finally:
                self._resending.discard(message.id)

            self._conversation(conversation_id).discard(message.id)
            try:
                await self._mirror.discard(conversation_id, message.id)
            except StorageError as exc:
                logger.warning("Could not drop local pending copy %s: %s", message.id, exc)
            await self._apply_send_result(conversation_id, message.text, result)
            confirmed += 1

        if confirmed:
            logger.info("Resent %d pending message(s)", confirmed)
        return confirmed

    # -- helpers -------------------------------------------------------

    def _conversation(self, user_id: UserId) -> Conversation:
        conversation = self._conversations.get(user_id)
        if conversation is None:
            conversation = Conversation(user_id)
            self._conversations[user_id] = conversation
        return conversation

    async def _append(self, conversation_id: UserId, message: Message) -> None:
        self._conversation(conversation_id).upsert(message)
        await self._backup_message(conversation_id, message)

    async def _remember_self(self) -> None:
        if self._session.is_admin:
            return
        try:
            await self._mirror.remember_user(self._session.as_known_user())
        except StorageError as exc:
            logger.warning("Could not record user in local known-user list: %s", exc)

    async def _read_local(self, user_id: UserId) -> list[Message]:
        try:
            return await self._mirror.load_conversation(user_id)
        except StorageError as exc:
            logger.warning("Local copy of conversation %s unavailable: %s", user_id, exc)
            return []

    async def _read_local_all(self) -> dict[UserId, list[Message]]:
        try:
            return await self._mirror.load_all()
        except StorageError as exc:
            logger.warning("Local conversation mirror unavailable: %s", exc)
            return {}

    async def _read_known_users(self) -> list[KnownUser]:
        try:
            return await self._mirror.load_known_users()
        except StorageError as exc:
            logger.warning("Local known-user list unavailable: %s", exc)
            return []

    async def _backup_message(self, conversation_id: UserId, message: Message) -> None:
        try:
            await self._mirror.append(conversation_id, message)
        except StorageError as exc:
            logger.warning("Local backup of message %s failed: %s", message.id, exc)

    async def _backup_conversation(self, conversation: Conversation) -> None:
        try:
            await self._mirror.save_conversation(conversation.user_id, conversation.messages)
        except StorageError as exc:
            logger.warning("Local backup of conversation %s failed: %s", conversation.user_id, exc)

    async def _backup_known_users(self) -> None:
        try:
            await self._mirror.save_known_users(self._known_users)
        except StorageError as exc:
            logger.warning("Local backup of known users failed: %s", exc)


def _clean_text(text: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Message text must not be empty")
    return text.strip()


def _merge_users(*groups: list[KnownUser]) -> list[KnownUser]:
    """Concatenate ``groups``, keeping the first entry per id."""
    seen: set[str] = set()
    merged: list[KnownUser] = []
    for group in groups:
        for user in group:
            if user.id in seen:
                continue
            seen.add(user.id)
            merged.append(user)
    return merged
