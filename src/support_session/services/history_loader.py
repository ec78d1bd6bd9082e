from __future__ import annotations

import logging

from support_session.application.dto.wire import parse_wire_message
from support_session.application.exceptions import HistoryLoadFailed, MalformedInbound
from support_session.application.ports.clock import Clock, SystemClock
from support_session.application.ports.history import HistorySource
from support_session.domain.entities.message import Message
from support_session.domain.value_objects.enums import SenderKind

logger = logging.getLogger(__name__)


class HistoryLoader:
    """Prior conversation between a participant and the support counterpart."""

    def __init__(self, source: HistorySource, *, clock: Clock | None = None) -> None:
        self._source = source
        self._clock = clock or SystemClock()

    async def load(self, self_id: int, counterpart_id: int) -> list[Message]:
        """Fetch, normalize and sort ascending by timestamp.

        Raises HistoryLoadFailed when the source itself fails; individual
        records that cannot be read are skipped.
        """
        try:
            records = await self._source.fetch(self_id, counterpart_id)
        except HistoryLoadFailed:
            raise
        except Exception as exc:
            raise HistoryLoadFailed(f"history fetch failed: {exc}") from exc

        now = self._clock.now()
        messages: list[Message] = []
        for record in records:
            try:
                wire = parse_wire_message(record)
            except MalformedInbound as exc:
                logger.warning("Skipping history record: %s", exc.detail)
                continue
            sender = SenderKind.ADMIN if wire.origin == counterpart_id else SenderKind.USER
            messages.append(wire.to_message(sender, now))

        messages.sort(key=lambda m: m.timestamp)
        logger.debug("Loaded %d history messages for %s", len(messages), self_id)
        return messages
