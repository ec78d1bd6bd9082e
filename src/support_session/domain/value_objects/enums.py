from __future__ import annotations

from enum import StrEnum


class SenderKind(StrEnum):
    USER = "user"
    BOT = "bot"
    ADMIN = "admin"


class SessionMode(StrEnum):
    ASSISTANT = "assistant"
    HUMAN = "human"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
