from __future__ import annotations

from typing import Protocol

from support_session.application.dto.mail import MailResult, SupportEmailDraft


class SupportMailSender(Protocol):
    async def send(self, draft: SupportEmailDraft) -> MailResult: ...
