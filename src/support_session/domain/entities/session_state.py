from __future__ import annotations

import bisect
from dataclasses import dataclass, field

from support_session.domain.entities.message import Message
from support_session.domain.value_objects.enums import ConnectionStatus, SenderKind, SessionMode


@dataclass(slots=True)
class SessionState:
    """Mutable record behind one mounted support view.

    ``transcript`` stays sorted by timestamp; messages with equal timestamps
    keep their insertion order.
    """

    mode: SessionMode = SessionMode.ASSISTANT
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    participant_id: int | None = None
    transcript: list[Message] = field(default_factory=list)
    seen_ids: set[str] = field(default_factory=set)
    awaiting_reply: bool = False
    escalation_pending: bool = False
    suggestion_dismissed: bool = False
    undelivered: dict[str, Message] = field(default_factory=dict)
    suggestion_threshold: int = 4

    def insert(self, message: Message) -> int | None:
        """Place ``message`` in timestamp order.

        Returns the index it landed at, or None when its id was already seen.
        """
        if message.id in self.seen_ids:
            return None
        self.seen_ids.add(message.id)
        index = bisect.bisect_right(
            self.transcript, message.timestamp, key=lambda m: m.timestamp,
        )
        self.transcript.insert(index, message)
        return index

    def last_user_message(self) -> Message | None:
        for message in reversed(self.transcript):
            if message.sender == SenderKind.USER:
                return message
        return None

    @property
    def is_human(self) -> bool:
        return self.mode == SessionMode.HUMAN

    @property
    def suggest_human(self) -> bool:
        return (
            self.mode == SessionMode.ASSISTANT
            and not self.suggestion_dismissed
            and len(self.transcript) >= self.suggestion_threshold
        )
