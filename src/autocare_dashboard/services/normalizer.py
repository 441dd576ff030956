"""Coerce backend message records into canonical ``Message`` values.

Records arrive in several shapes depending on which backend version (or
push event) produced them. ``FIELD_RULES`` declares, for every canonical
field, which source attributes are consulted and in what order; the first
acceptable value wins. Malformed records are dropped, never raised.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timezone
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from autocare_dashboard.application.dto.payloads import Party, RawMessage
from autocare_dashboard.application.ports.clock import Clock, SystemClock
from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.enums import SenderRole
from autocare_dashboard.domain.value_objects.ids import MessageId, UserId

logger = logging.getLogger(__name__)

_ROLES = frozenset(role.value for role in SenderRole)
_system_clock = SystemClock()


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_role(value: Any) -> bool:
    return isinstance(value, str) and value in _ROLES


@dataclass(frozen=True, slots=True)
class FieldRule:
    sources: tuple[str, ...]
    accept: Callable[[Any], bool] = _present


FIELD_RULES: Mapping[str, FieldRule] = MappingProxyType({
    "id": FieldRule(("mongo_id", "id", "message_id")),
    "text": FieldRule(("text",), _is_text),
    "sender_type": FieldRule(("sender_type", "sender"), _is_role),
    "timestamp": FieldRule(("created_at", "timestamp")),
    "pending": FieldRule(("pending",), lambda v: v is not None),
})


def _coalesce(raw: RawMessage, field: str) -> Any:
    rule = FIELD_RULES[field]
    for source in rule.sources:
        value = getattr(raw, source)
        if rule.accept(value):
            return value
    return None


def generate_message_id(clock: Clock | None = None) -> MessageId:
    """Time-based id with a random suffix, for records that carry none."""
    now = (clock or _system_clock).now()
    return MessageId(f"{int(now.timestamp() * 1000)}-{secrets.token_hex(4)}")


def parse_raw(data: Any) -> RawMessage | None:
    if data is None:
        return None
    if isinstance(data, RawMessage):
        return data
    if not isinstance(data, Mapping):
        return None
    try:
        return RawMessage.model_validate(data)
    except PydanticValidationError:
        logger.debug("Dropping unparseable message record", exc_info=True)
        return None


def normalize_message(
    data: Any,
    *,
    clock: Clock | None = None,
    default_sender: SenderRole | None = None,
) -> Message | None:
    """Return the canonical message for ``data``, or ``None`` if malformed."""
    raw = parse_raw(data)
    if raw is None:
        return None

    text = _coalesce(raw, "text")
    if text is None:
        return None

    sender = _coalesce(raw, "sender_type")
    role = SenderRole(sender) if sender is not None else default_sender
    if role is None:
        return None

    timestamp = _coalesce(raw, "timestamp") or (clock or _system_clock).now()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    raw_id = _coalesce(raw, "id")
    message_id = MessageId(str(raw_id)) if raw_id is not None else generate_message_id(clock)

    return Message(
        id=message_id,
        text=text,
        sender_type=role,
        timestamp=timestamp,
        pending=bool(_coalesce(raw, "pending")),
    )


def normalize_batch(
    items: Iterable[Any] | None,
    *,
    newest_first: bool = False,
    clock: Clock | None = None,
    default_sender: SenderRole | None = None,
) -> list[Message]:
    """Normalize ``items`` and return them oldest first.

    ``newest_first`` pages are reversed before sorting so that records with
    equal timestamps end up in chronological order.
    """
    records = list(items or [])
    if newest_first:
        records.reverse()

    messages = [
        m
        for m in (normalize_message(r, clock=clock, default_sender=default_sender) for r in records)
        if m is not None
    ]
    dropped = len(records) - len(messages)
    if dropped:
        logger.debug("Dropped %d malformed message record(s)", dropped)

    messages.sort(key=lambda m: m.timestamp)
    return messages


def _party_id(value: str | int | Party | None) -> str | None:
    if isinstance(value, Party):
        return str(value.id) if _present(value.id) else None
    return str(value) if _present(value) else None


def _counterpart_party(raw: RawMessage) -> tuple[str | int | Party | None, bool]:
    """The non-admin side of ``raw`` and whether it is the sender."""
    if _coalesce(raw, "sender_type") == SenderRole.ADMIN:
        return raw.recipient, False
    # Legacy records carry the role in ``sender``; the identity is then in ``senderId``
    if raw.sender is None or _is_role(raw.sender):
        return raw.sender_id, True
    return raw.sender, True


def conversation_key(data: Any) -> UserId | None:
    """User id of the conversation ``data`` belongs to.

    The explicit ``conversation`` field wins; otherwise the id on the side
    that is not the admin.
    """
    raw = parse_raw(data)
    if raw is None:
        return None
    if _present(raw.conversation):
        return UserId(str(raw.conversation))
    party, _ = _counterpart_party(raw)
    party_id = _party_id(party)
    return UserId(party_id) if party_id else None


def counterpart(data: Any) -> KnownUser | None:
    raw = parse_raw(data)
    if raw is None:
        return None
    key = conversation_key(raw)
    if key is None:
        return None

    party, is_sender = _counterpart_party(raw)
    name = party.name if isinstance(party, Party) else None
    if not name and is_sender:
        name = raw.sender_name
    email = party.email if isinstance(party, Party) else None
    return KnownUser(id=key, name=name or "User", email=email or "")
