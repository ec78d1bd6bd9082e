from __future__ import annotations

import uuid
from typing import NewType

MessageId = NewType("MessageId", str)


def local_message_id() -> MessageId:
    """Id for an optimistic, locally authored message.

    Server ids are stringified integers, so the prefix keeps the two spaces apart.
    """
    return MessageId(f"local-{uuid.uuid4().hex}")
