from __future__ import annotations

from dataclasses import dataclass

from support_session.domain.entities.message import Message
from support_session.domain.value_objects.enums import ConnectionStatus, SessionMode


@dataclass(frozen=True, slots=True)
class MessageAppended:
    message: Message
    index: int


@dataclass(frozen=True, slots=True)
class ModeChanged:
    mode: SessionMode


@dataclass(frozen=True, slots=True)
class ConnectionStatusChanged:
    status: ConnectionStatus


@dataclass(frozen=True, slots=True)
class AwaitingReplyChanged:
    awaiting_reply: bool


SessionEvent = MessageAppended | ModeChanged | ConnectionStatusChanged | AwaitingReplyChanged
