from __future__ import annotations

import pytest

from autocare_dashboard.domain.entities.known_user import KnownUser
from autocare_dashboard.domain.entities.message import Message
from autocare_dashboard.domain.value_objects.enums import SenderRole
from autocare_dashboard.infrastructure.storage.local_mirror import LocalMirror
from autocare_dashboard.infrastructure.storage.memory import InMemoryKeyValueStore
from tests.conftest import at


def _msg(mid: str, minutes: int, text: str = "x", pending: bool = False) -> Message:
    return Message(id=mid, text=text, sender_type=SenderRole.USER, timestamp=at(minutes), pending=pending)


@pytest.mark.asyncio
async def test_append_is_last_write_wins(mirror):
    await mirror.append("u-1", _msg("a", 1, text="draft", pending=True))
    await mirror.append("u-1", _msg("b", 2))
    await mirror.append("u-1", _msg("a", 1, text="final"))

    messages = await mirror.load_conversation("u-1")

    assert [(m.id, m.text, m.pending) for m in messages] == [("a", "final", False), ("b", "x", False)]


@pytest.mark.asyncio
async def test_load_all_reads_every_conversation_key(store, mirror):
    await mirror.save_conversation("u-1", [_msg("a", 1)])
    await mirror.save_conversation("u-2", [_msg("b", 2), _msg("c", 3)])
    await mirror.save_known_users([KnownUser(id="u-1")])
    await store.set("unrelated", "[]")

    conversations = await mirror.load_all()

    assert {uid: [m.id for m in msgs] for uid, msgs in conversations.items()} == {
        "u-1": ["a"],
        "u-2": ["b", "c"],
    }


@pytest.mark.asyncio
async def test_corrupt_values_read_as_empty():
    store = InMemoryKeyValueStore({
        "autocare_messages_u-1": "{not json",
        "autocare_messages_u-2": '{"an": "object"}',
        "autocare_message_users": '[{"id": "u-1", "name": "Ann"}, {"name": "no id"}, 5]',
    })
    mirror = LocalMirror(store)

    assert await mirror.load_conversation("u-1") == []
    assert await mirror.load_conversation("u-2") == []
    assert await mirror.load_known_users() == [KnownUser(id="u-1", name="Ann")]


@pytest.mark.asyncio
async def test_remember_user_deduplicates(mirror):
    await mirror.remember_user(KnownUser(id="u-1", name="Ann"))
    users = await mirror.remember_user(KnownUser(id="u-1", name="Ann again"))
    users = await mirror.remember_user(KnownUser(id="u-2", name="Bo"))

    assert [(u.id, u.name) for u in users] == [("u-1", "Ann"), ("u-2", "Bo")]
    assert await mirror.load_known_users() == users


@pytest.mark.asyncio
async def test_discard_removes_one_record(mirror):
    await mirror.save_conversation("u-1", [_msg("a", 1), _msg("b", 2, pending=True)])

    await mirror.discard("u-1", "b")
    await mirror.discard("u-1", "missing")

    assert [m.id for m in await mirror.load_conversation("u-1")] == ["a"]


@pytest.mark.asyncio
async def test_custom_prefix_and_known_users_key():
    store = InMemoryKeyValueStore()
    mirror = LocalMirror(store, prefix="garage", known_users_key="garage_people")

    await mirror.append("u-9", _msg("a", 1))
    await mirror.save_known_users([KnownUser(id="u-9")])

    assert set(await store.keys("garage")) == {"garage_u-9", "garage_people"}
    assert list(await mirror.load_all()) == ["u-9"]
