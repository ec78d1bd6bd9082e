from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from support_session.domain.value_objects.enums import SenderKind


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    content: str
    sender: SenderKind
    timestamp: datetime
    sender_id: int | None = None
    receiver_id: int | None = None

    @property
    def is_local(self) -> bool:
        return self.id.startswith("local-")
