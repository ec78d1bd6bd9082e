from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Frame:
    address: str
    body: str


class PubSubTransport(Protocol):
    """One broker connection; a fresh instance is used for every (re)connect."""

    async def open(self) -> None: ...

    async def subscribe(self, address: str) -> None: ...

    async def unsubscribe(self, address: str) -> None: ...

    async def publish(self, address: str, body: str) -> None: ...

    async def read(self) -> Frame | None:
        """Wait for the next inbound event.

        Returns a Frame for data, None for control traffic such as heartbeat
        replies. Raises when the connection is lost.
        """
        ...

    async def ping(self) -> None: ...

    async def close(self) -> None: ...
