from __future__ import annotations

import logging

import pytest

from autocare_dashboard.application.dto.events import MessageReceivedPayload, PaymentPayload
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.domain.value_objects.enums import BridgeEvent
from autocare_dashboard.domain.value_objects.ids import UserId
from tests.conftest import make_bridge


@pytest.mark.asyncio
async def test_admin_joins_admin_room_on_connect(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)

    await bridge.connect()

    assert bridge.connected is True
    assert socket_client.emitted == [("join-admin-room", None)]


@pytest.mark.asyncio
async def test_user_joins_private_room_and_sends_token(socket_client):
    session = Session(user_id=UserId("u-42"), token="tok-123")
    bridge = make_bridge(session, socket_client)

    await bridge.connect()

    assert socket_client.emitted == [("join-user-room", "u-42")]
    assert socket_client.connect_kwargs["headers"] == {"Authorization": "Bearer tok-123"}
    assert socket_client.connect_kwargs["auth"] == {"token": "tok-123"}


@pytest.mark.asyncio
async def test_disconnect_only_when_connected(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)
    await bridge.disconnect()
    assert bridge.connected is False

    await bridge.connect()
    await bridge.disconnect()
    assert bridge.connected is False


def test_every_bridge_event_has_a_socket_listener(admin_session, socket_client):
    make_bridge(admin_session, socket_client)

    for event in BridgeEvent:
        assert event.value in socket_client.handlers


@pytest.mark.asyncio
async def test_pushed_event_is_validated_and_dispatched(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)
    received = []

    async def handler(payload):
        received.append(payload)

    bridge.subscribe(BridgeEvent.PAYMENT_COMPLETED, handler)
    await socket_client.deliver(
        "payment-completed",
        {"userId": "u-42", "userName": "Dana", "amount": 50, "currency": "usd", "paymentIntentId": "pi_1"},
    )

    [payload] = received
    assert isinstance(payload, PaymentPayload)
    assert payload.amount == 50.0
    assert payload.payment_intent_id == "pi_1"


@pytest.mark.asyncio
async def test_invalid_payload_is_dropped(admin_session, socket_client, caplog):
    bridge = make_bridge(admin_session, socket_client)
    received = []

    async def handler(payload):
        received.append(payload)

    bridge.subscribe(BridgeEvent.MESSAGE_RECEIVED, handler)
    with caplog.at_level(logging.WARNING):
        await socket_client.deliver("message-received", {"text": "who sent this?"})
        await socket_client.deliver("payment-initiated", {"userName": "no amount"})

    assert received == []
    assert "Dropping invalid message-received payload" in caplog.text


@pytest.mark.asyncio
async def test_handlers_are_independent(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)
    calls = []

    async def broken(payload):
        raise RuntimeError("boom")

    async def healthy(payload):
        calls.append(payload.resolved_sender_id)

    bridge.subscribe(BridgeEvent.MESSAGE_RECEIVED, broken)
    bridge.subscribe(BridgeEvent.MESSAGE_RECEIVED, healthy)
    await bridge.dispatch("message-received", {"senderId": 7, "text": "hi"})

    assert calls == ["7"]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)
    calls = []

    async def handler(payload):
        calls.append(payload)

    unsubscribe = bridge.subscribe(BridgeEvent.MESSAGE_RECEIVED, handler)
    unsubscribe()
    unsubscribe()
    await bridge.dispatch(BridgeEvent.MESSAGE_RECEIVED, {"senderId": "u-1", "text": "hi"})

    assert calls == []


@pytest.mark.asyncio
async def test_unknown_event_names_are_ignored(admin_session, socket_client):
    bridge = make_bridge(admin_session, socket_client)
    await bridge.dispatch("service-request-updated", {"id": 1})


def test_message_payload_resolves_embedded_sender():
    payload = MessageReceivedPayload.model_validate({
        "sender": {"_id": "u-5", "name": "Eve", "email": "eve@example.com"},
        "message": {"_id": "m-1", "text": "hi", "senderType": "user"},
    })

    assert payload.resolved_sender_id == "u-5"
    assert payload.resolved_sender_name == "Eve"
    assert payload.resolved_sender_email == "eve@example.com"
    assert payload.message_record() == {"_id": "m-1", "text": "hi", "senderType": "user"}
