"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from support_session.application.dto.identity import Identity
from support_session.application.dto.mail import MailResult, SupportEmailDraft
from support_session.application.exceptions import HistoryLoadFailed, IdentityUnresolved
from support_session.application.ports.bus import Frame
from support_session.infrastructure.bus.channel import ChannelConnection
from support_session.services.history_loader import HistoryLoader
from support_session.services.support_session import SupportSession

PARTICIPANT_ID = 42
COUNTERPART_ID = 2
COUNTERPART_ADDRESS = "support.admin"
INBOX = f"support.inbox.{PARTICIPANT_ID}"
T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class TickingClock:
    """Each call to now() is one second after the previous one."""
    current: datetime = T0
    step: timedelta = timedelta(seconds=1)

    def now(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@dataclass
class FakeBroker:
    published: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    transports: list[FakeTransport] = field(default_factory=list)
    fail_opens: int = 0
    fail_publish: bool = False
    answer_pings: bool = True
    opens: int = 0

    def transport(self) -> FakeTransport:
        t = FakeTransport(self)
        self.transports.append(t)
        return t

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    def deliver(self, address: str, payload: dict[str, Any] | str) -> None:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        for t in self.transports:
            if t.is_open and address in t.subscribed:
                t.inbox.put_nowait(Frame(address=address, body=body))

    def sever(self) -> None:
        self.current.inbox.put_nowait(ConnectionError("connection reset"))


@dataclass
class FakeTransport:
    broker: FakeBroker
    subscribed: set[str] = field(default_factory=set)
    inbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    is_open: bool = False
    closed: bool = False
    pings: int = 0

    async def open(self) -> None:
        self.broker.opens += 1
        if self.broker.fail_opens > 0:
            self.broker.fail_opens -= 1
            raise ConnectionError("connection refused")
        self.is_open = True

    async def subscribe(self, address: str) -> None:
        self.subscribed.add(address)

    async def unsubscribe(self, address: str) -> None:
        self.subscribed.discard(address)

    async def publish(self, address: str, body: str) -> None:
        if self.broker.fail_publish:
            raise ConnectionError("broken pipe")
        self.broker.published.append((address, json.loads(body)))

    async def read(self) -> Frame | None:
        item = await self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def ping(self) -> None:
        self.pings += 1
        if self.broker.answer_pings:
            self.inbox.put_nowait(None)

    async def close(self) -> None:
        self.is_open = False
        self.closed = True


@dataclass
class FakeHistorySource:
    records: list[dict[str, Any]] = field(default_factory=list)
    error: Exception | None = None
    calls: list[tuple[int, int]] = field(default_factory=list)

    async def fetch(self, self_id: int, counterpart_id: int) -> list[dict[str, Any]]:
        self.calls.append((self_id, counterpart_id))
        if self.error is not None:
            raise self.error
        return list(self.records)


@dataclass
class FakeResolver:
    identity: Identity | None = None

    async def resolve(self) -> Identity:
        if self.identity is None:
            raise IdentityUnresolved("not authenticated")
        return self.identity


@dataclass
class FakeMailer:
    result: MailResult = field(default_factory=lambda: MailResult(success=True, message="ok"))
    sent: list[SupportEmailDraft] = field(default_factory=list)

    async def send(self, draft: SupportEmailDraft) -> MailResult:
        self.sent.append(draft)
        return self.result


def channel_factory(broker: FakeBroker, **overrides: Any) -> Callable[..., ChannelConnection]:
    options: dict[str, Any] = {
        "reconnect_delay": 0.01,
        "heartbeat_interval": 0.05,
        "heartbeat_timeout": 0.3,
    }
    options.update(overrides)

    def _factory(*, on_connect=None, on_status=None) -> ChannelConnection:
        return ChannelConnection(
            broker.transport, on_connect=on_connect, on_status=on_status, **options,
        )

    return _factory


def make_session(
    broker: FakeBroker,
    *,
    history: FakeHistorySource | None = None,
    clock: TickingClock | None = None,
    mailer: FakeMailer | None = None,
    **channel_overrides: Any,
) -> SupportSession:
    clock = clock or TickingClock()
    return SupportSession(
        HistoryLoader(history or FakeHistorySource(), clock=clock),
        channel_factory=channel_factory(broker, **channel_overrides),
        mailer=mailer,
        clock=clock,
        counterpart_id=COUNTERPART_ID,
        counterpart_address=COUNTERPART_ADDRESS,
    )


def admin_frame(msg_id: int | None, text: str, at: datetime, sender: int = COUNTERPART_ID) -> dict[str, Any]:
    frame: dict[str, Any] = {
        "sendFrom": sender,
        "sendTo": PARTICIPANT_ID,
        "message": text,
        "date": at.isoformat(),
    }
    if msg_id is not None:
        frame["id"] = msg_id
    return frame


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def start_session(session: SupportSession, *, connected: bool = True) -> SupportSession:
    await session.initialize(Identity(participant_id=PARTICIPANT_ID, first_name="Jean", last_name="Dupont", email="jean@test.com"))
    if connected:
        assert session.channel is not None
        await session.channel.wait_connected(timeout=2.0)
    return session


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def identity() -> Identity:
    return Identity(participant_id=PARTICIPANT_ID, first_name="Jean", last_name="Dupont", email="jean@test.com")


@pytest.fixture
def history_failure() -> FakeHistorySource:
    return FakeHistorySource(error=HistoryLoadFailed("boom"))
