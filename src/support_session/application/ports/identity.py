from __future__ import annotations

from typing import Protocol

from support_session.application.dto.identity import Identity


class IdentityResolver(Protocol):
    async def resolve(self) -> Identity: ...
