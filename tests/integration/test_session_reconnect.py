from __future__ import annotations

from datetime import timedelta

import pytest

from support_session.domain.events.session_events import ConnectionStatusChanged
from support_session.domain.value_objects.enums import ConnectionStatus, SessionMode
from tests.conftest import INBOX, T0, admin_frame, eventually, make_session, start_session


@pytest.mark.asyncio
async def test_conversation_survives_reconnect_without_duplicates(broker):
    session = await start_session(make_session(broker))
    statuses: list[ConnectionStatus] = []
    session.subscribe(
        lambda e: statuses.append(e.status) if isinstance(e, ConnectionStatusChanged) else None
    )
    await session.request_human()

    broker.deliver(INBOX, admin_frame(1, "Bonjour", T0 + timedelta(hours=1)))
    await eventually(lambda: "1" in session.state.seen_ids)

    broker.sever()
    await eventually(lambda: len(broker.transports) == 2 and session.channel.is_connected)
    assert statuses[:2] == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
    assert broker.current.subscribed == {INBOX}

    # broker redelivers the last frame after the reconnect, then a new one
    broker.deliver(INBOX, admin_frame(1, "Bonjour", T0 + timedelta(hours=1)))
    broker.deliver(INBOX, admin_frame(2, "Je m'appelle Marc", T0 + timedelta(hours=1, minutes=1)))
    await eventually(lambda: "2" in session.state.seen_ids)

    contents = [m.content for m in session.transcript]
    assert contents.count("Bonjour") == 1
    assert contents[-2:] == ["Bonjour", "Je m'appelle Marc"]
    assert session.mode == SessionMode.HUMAN

    await session.send("merci Marc")
    assert broker.published[-1][1]["text"] == "merci Marc"
    await session.teardown()


@pytest.mark.asyncio
async def test_escalation_requested_during_outage_is_sent_once_reconnected(broker):
    session = await start_session(make_session(broker, reconnect_delay=0.05))
    broker.fail_opens = 2
    broker.sever()
    await eventually(lambda: session.connection_status == ConnectionStatus.CONNECTING)

    await session.request_human()
    assert session.state.escalation_pending is True

    await eventually(lambda: session.connection_status == ConnectionStatus.CONNECTED)
    await eventually(lambda: not session.state.escalation_pending)
    escalations = [p for _, p in broker.published if p.get("kind") == "escalation"]
    assert len(escalations) == 1
    await session.teardown()


@pytest.mark.asyncio
async def test_silent_broker_is_detected_and_reconnected(broker):
    broker.answer_pings = False
    session = await start_session(
        make_session(broker, heartbeat_interval=0.02, heartbeat_timeout=0.05)
    )
    first = broker.current

    await eventually(lambda: first.closed and len(broker.transports) >= 2)
    assert session.connection_status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED)
    await session.teardown()
