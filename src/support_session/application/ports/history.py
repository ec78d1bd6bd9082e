from __future__ import annotations

from typing import Any, Protocol


class HistorySource(Protocol):
    async def fetch(self, self_id: int, counterpart_id: int) -> list[dict[str, Any]]: ...
