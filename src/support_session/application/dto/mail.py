from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupportEmailDraft:
    subject: str = ""
    content: str = ""
    user_email: str = ""
    user_name: str = ""


@dataclass(frozen=True, slots=True)
class MailResult:
    success: bool
    message: str = ""
